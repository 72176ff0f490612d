import logging

from sqltx.logger import CallbackLogger, LoggingQueryLogger


def test_callback_logger_lines():
    lines = []
    CallbackLogger(lines.append).log_query(
        "SELECT a FROM b WHERE c = $1 AND d = $2", ["x", b'{"k": 1}']
    )
    assert lines == [
        "QUERY SELECT a FROM b WHERE c = $1 AND d = $2",
        "  $1 'x'",
        '  $2 {"k": 1}',
    ]


def test_callback_logger_keeps_other_bytes():
    lines = []
    CallbackLogger(lines.append).log_query("SELECT $1", [b"\x00\x01"])
    assert lines[1] == "  $1 b'\\x00\\x01'"


def test_logging_query_logger(caplog):
    with caplog.at_level(logging.DEBUG, logger="sqltx.query"):
        LoggingQueryLogger().log_query("DELETE FROM b", [])
    assert [
        (record.name, record.levelno, record.getMessage())
        for record in caplog.records
    ] == [("sqltx.query", logging.DEBUG, "QUERY DELETE FROM b")]
