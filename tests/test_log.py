# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

import json
from collections.abc import Iterator

import pytest
import structlog

from anchor.log import configure_logging


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    yield
    structlog.reset_defaults()


class TestLogging:

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(level='debug')
        structlog.get_logger().bind(carrier='op_return').info('Test event', size=42)
        record = json.loads(capsys.readouterr().out)
        assert record['event'] == 'Test event'
        assert record['level'] == 'info'
        assert record['carrier'] == 'op_return'
        assert record['size'] == 42
        assert 'timestamp' in record

    def test_level_filtering(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(level='WARNING')
        logger = structlog.get_logger()
        logger.info('Filtered')
        logger.warning('Kept')
        output = capsys.readouterr().out
        assert 'Filtered' not in output
        assert 'Kept' in output

    def test_console_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=False, level=10)
        structlog.get_logger().debug('Console event')
        assert 'Console event' in capsys.readouterr().out

    def test_unknown_level(self) -> None:
        with pytest.raises(ValueError, match='Unknown log level'):
            configure_logging(level='verbose')
