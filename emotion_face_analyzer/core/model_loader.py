"""
ONNX 모델 파일 위치 해석 (resolver 체인)

resolver는 `filename -> source | None` 호출 가능 객체이며 source는 모델
바이트(bytes) 또는 로컬 파일 경로(str)다. load_first_success가 순서대로
시도하고 첫 번째로 세션 생성에 성공한 결과를 사용한다.
"""

from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence, Union
from urllib.parse import urljoin

import requests

from ..utils import get_config, get_logger

logger = get_logger(__name__)

ModelSource = Union[bytes, str]
ModelResolver = Callable[[str], Optional[ModelSource]]


class HttpModelResolver:
    """URL 목록에서 모델 파일을 메모리로 내려받는 resolver"""

    def __init__(self, base_urls: Sequence[str], timeout: float = 10.0, session: requests.Session = None):
        """
        Args:
            base_urls: 모델 파일이 위치한 기본 URL 목록 (순서대로 시도)
            timeout: 요청 타임아웃 (초)
            session: 재사용할 requests.Session (테스트 주입용)
        """
        # 중복 제거 (순서 유지)
        self.base_urls = list(dict.fromkeys(url for url in base_urls if url))
        self.timeout = timeout
        self.session = session or requests.Session()

    def candidate_urls(self, filename: str) -> List[str]:
        urls = []
        for base in self.base_urls:
            if base.endswith(filename):
                urls.append(base)
            else:
                urls.append(urljoin(base if base.endswith('/') else base + '/', filename))
        return list(dict.fromkeys(urls))

    def __call__(self, filename: str) -> Optional[bytes]:
        for url in self.candidate_urls(filename):
            try:
                logger.debug(f"Attempting to fetch ONNX model from: {url}")
                response = self.session.get(
                    url,
                    headers={'Accept': 'application/octet-stream'},
                    timeout=self.timeout
                )
                response.raise_for_status()
                logger.info(f"Successfully fetched model from: {url}")
                return response.content
            except requests.RequestException as e:
                logger.warning(f"Error fetching model from {url}: {e}")
        return None

    def __repr__(self):
        return f"HttpModelResolver({self.base_urls})"


class LocalPathResolver:
    """로컬 디렉토리에서 모델 파일 경로를 찾는 resolver"""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory).expanduser()

    def __call__(self, filename: str) -> Optional[str]:
        path = self.directory / filename
        if path.is_file():
            return str(path)
        logger.debug(f"Model file not found: {path}")
        return None

    def __repr__(self):
        return f"LocalPathResolver({self.directory})"


def build_default_resolvers(config=None) -> List[ModelResolver]:
    """
    설정 파일(models 섹션)로부터 기본 resolver 체인 구성

    순서: base_urls (메모리 다운로드) → fallback_url → search_dirs (직접 경로)
    """
    config = config or get_config()
    timeout = float(config.get('models.request_timeout', 10.0))

    resolvers: List[ModelResolver] = []

    base_urls = config.get('models.base_urls') or []
    if base_urls:
        resolvers.append(HttpModelResolver(base_urls, timeout=timeout))

    fallback_url = config.get('models.fallback_url')
    if fallback_url:
        resolvers.append(HttpModelResolver([fallback_url], timeout=timeout))

    for directory in dict.fromkeys(config.get('models.search_dirs') or []):
        resolvers.append(LocalPathResolver(directory))

    return resolvers


def load_first_success(
    resolvers: Iterable[ModelResolver],
    filename: str,
    open_session: Callable[[ModelSource], Any]
) -> Optional[Any]:
    """
    resolver를 순서대로 시도하여 첫 번째로 성공한 세션 반환

    Args:
        resolvers: resolver 목록
        filename: 모델 파일 이름
        open_session: source로 세션을 생성하는 함수 (실패 시 예외)

    Returns:
        생성된 세션, 모든 시도가 실패하면 None
    """
    for resolver in resolvers:
        try:
            source = resolver(filename)
        except Exception as e:
            logger.warning(f"Resolver {resolver!r} failed for '{filename}': {e}")
            continue

        if source is None:
            continue

        label = source if isinstance(source, str) else f"<{len(source)} bytes>"
        try:
            session = open_session(source)
        except Exception as e:
            logger.warning(f"Failed to create session from {label} ({resolver!r}): {e}")
            continue

        logger.info(f"ONNX model '{filename}' loaded via {resolver!r} from {label}")
        return session

    logger.error(f"Failed to load model '{filename}' from any of the possible methods/paths")
    return None
