"""
Logging configuration module for the emotion face analyzer.
config.yaml의 logging 섹션을 기반으로 콘솔/파일 핸들러를 설정한다.
"""
import logging
import logging.handlers
from pathlib import Path
from .config_loader import get_config


def setup_logging(name: str = None) -> logging.Logger:
    """
    로깅 시스템 설정 및 로거 반환

    Args:
        name: 로거 이름 (일반적으로 __name__ 사용)

    Returns:
        logging.Logger: 설정된 로거 객체
    """
    config = get_config()

    logger = logging.getLogger(name or __name__)

    # 이미 핸들러가 설정되어 있으면 중복 설정 방지
    if logger.handlers:
        return logger

    log_level = getattr(logging, config.logging.level.upper(), logging.INFO)
    logger.setLevel(log_level)

    formatter = logging.Formatter(config.logging.format, datefmt=config.logging.date_format)

    # 콘솔 핸들러
    if config.logging.console.enabled:
        console_handler = logging.StreamHandler()
        console_level = getattr(logging, config.logging.console.level.upper(), logging.INFO)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    # 파일 핸들러 (RotatingFileHandler)
    if config.logging.file.enabled:
        log_dir = Path(config.logging.file.directory)
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / config.logging.file.filename,
            maxBytes=config.logging.file.max_bytes,
            backupCount=config.logging.file.backup_count,
            encoding='utf-8'
        )
        file_level = getattr(logging, config.logging.file.level.upper(), logging.DEBUG)
        file_handler.setLevel(file_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = None) -> logging.Logger:
    """
    로거 가져오기 (간편 함수)

    Args:
        name: 로거 이름 (일반적으로 __name__ 사용)

    Returns:
        logging.Logger: 설정된 로거 객체
    """
    return setup_logging(name)
