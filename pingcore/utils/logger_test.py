import logging
from logging.handlers import RotatingFileHandler

from rich.logging import RichHandler

from .logger import Logger


def test_console_only_by_default():
	logger = Logger(name='pingcore.test.console').getLogger()
	assert logger.level == logging.INFO
	assert not logger.propagate
	assert [type(h) for h in logger.handlers] == [RichHandler]


def test_verbose_enables_debug():
	logger = Logger(name='pingcore.test.verbose', verbose=True).getLogger()
	assert logger.level == logging.DEBUG
	assert logger.handlers[0].level == logging.DEBUG


def test_file_handler_writes_log(tmp_path):
	log_dir = tmp_path / 'logs'
	logger = Logger(name='pingcore.test.file', log_dir=log_dir, no_color=True).getLogger()
	assert any(isinstance(h, RotatingFileHandler) for h in logger.handlers)

	logger.info("probe started")
	for handler in logger.handlers:
		handler.flush()
	assert "probe started" in (log_dir / 'tcping.log').read_text()


def test_reconfiguring_replaces_handlers(tmp_path):
	Logger(name='pingcore.test.reconfigure', log_dir=tmp_path)
	logger = Logger(name='pingcore.test.reconfigure').getLogger()
	assert len(logger.handlers) == 1
