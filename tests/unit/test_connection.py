"""Unit tests for the connection descriptor"""

import pytest

from sql_server_supervisor.connection import NON_VALIDATING_SSL_FACTORY, ConnectionDescriptor


@pytest.mark.unit
def test_plain_descriptor():
    descriptor = ConnectionDescriptor(port=10123, user='spark')
    assert descriptor.jdbc_url == 'jdbc:postgresql://localhost:10123/default'
    assert descriptor.jdbc_properties() == {
        'user': 'spark',
        'password': '',
        'prepareThreshold': '1',
        'preferQueryMode': 'extended',
    }
    assert descriptor.dsn() == 'host=localhost port=10123 dbname=default user=spark sslmode=disable'


@pytest.mark.unit
def test_ssl_descriptor():
    descriptor = ConnectionDescriptor(port=10123, user='spark', ssl=True, query_mode='simple')
    props = descriptor.jdbc_properties()
    assert props['ssl'] == 'true'
    assert props['sslfactory'] == NON_VALIDATING_SSL_FACTORY
    assert props['preferQueryMode'] == 'simple'
    assert descriptor.dsn().endswith('sslmode=require')
