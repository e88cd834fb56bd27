import logging
from pathlib import Path
from typing import Optional
from logging.handlers import RotatingFileHandler
from rich.logging import RichHandler
from rich.console import Console


class Logger:
    """Configures the package logger.

    Console output goes to stderr through rich so that it never mixes with
    probe lines on stdout. A rotating file handler is added when a log
    directory is given.
    """

    def __init__(self, name: str = "pingcore", log_dir: Optional[Path] = None,
                 verbose: bool = False, no_color: bool = False):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if verbose else logging.INFO)
        self.logger.propagate = False
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        self._setup_console_handler(verbose, no_color)
        if log_dir:
            self._setup_file_handler(Path(log_dir))

    def _setup_console_handler(self, verbose: bool, no_color: bool) -> None:
        """Setup console handler with rich output"""
        console = Console(stderr=True, color_system=None if no_color else 'auto')
        console_handler = RichHandler(
            console=console,
            show_path=verbose,
            enable_link_path=verbose,
            markup=False
        )
        console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        self.logger.addHandler(console_handler)

    def _setup_file_handler(self, log_dir: Path) -> None:
        """Setup rotating file handler for all logs"""
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / "tcping.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        self.logger.addHandler(file_handler)

    def getLogger(self) -> logging.Logger:
        """Get the underlying logger instance"""
        return self.logger
