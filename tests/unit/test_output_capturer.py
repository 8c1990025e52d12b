"""Unit tests for the stream output capturer"""

import io

import pytest

from sql_server_supervisor.utils import OutputCapturer


class BrokenStream:
    """Returns a few lines, then fails like a torn-down pipe."""

    def __init__(self, lines):
        self.lines = list(lines)

    def readline(self):
        if self.lines:
            return self.lines.pop(0)
        raise OSError('stream broken')


def capture(stream):
    lines = []
    capturer = OutputCapturer(stream, lines.append)
    capturer.start()
    capturer.join(timeout=5)
    assert not capturer.is_alive()
    return lines


@pytest.mark.unit
def test_reads_every_line_verbatim():
    stream = io.BytesIO(b'first line\n  indented  \n\nwindows\r\nlast without newline')
    assert capture(stream) == [
        'first line',
        '  indented  ',
        '',
        'windows',
        'last without newline',
    ]


@pytest.mark.unit
def test_empty_stream():
    assert capture(io.BytesIO(b'')) == []


@pytest.mark.unit
def test_invalid_utf8_is_replaced():
    lines = capture(io.BytesIO(b'bad \xff byte\n'))
    assert lines == ['bad \ufffd byte']


@pytest.mark.unit
def test_read_error_ends_capture_quietly():
    lines = capture(BrokenStream([b'one\n', b'two\n']))
    assert lines == ['one', 'two']


@pytest.mark.unit
def test_callback_error_ends_capture_quietly():
    seen = []

    def callback(line):
        seen.append(line)
        raise RuntimeError('callback failed')

    capturer = OutputCapturer(io.BytesIO(b'a\nb\n'), callback)
    capturer.start()
    capturer.join(timeout=5)
    assert not capturer.is_alive()
    assert seen == ['a']
