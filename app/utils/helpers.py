"""
@description 通用工具函数
@responsibility 提供磁力链接校验、info_hash 解析和文件访问地址生成
"""

from __future__ import annotations
from typing import Optional
from urllib.parse import quote
import re
import base64

from app.core.errors import ValidationError

MAGNET_PREFIX = "magnet:"
FILES_ROUTE = "/api/files"


def validate_locator(locator: Optional[str]) -> str:
    """
    校验提交的磁力链接

    Raises:
        ValidationError: 为空、非字符串或不是 magnet: 开头
    """
    if not locator or not isinstance(locator, str) or not locator.strip():
        raise ValidationError("磁力链接不能为空")

    locator = locator.strip()
    if not locator.startswith(MAGNET_PREFIX):
        raise ValidationError("磁力链接格式错误，必须以 magnet: 开头")
    return locator


def artifact_url(name: str) -> str:
    """生成已完成文件的下载地址"""
    return f"{FILES_ROUTE}/{quote(name, safe='')}"


def parse_info_hash_from_magnet(magnet: str) -> Optional[str]:
    """
    从 magnet 链接中解析 info_hash (BTIH)

    支持两种格式：
    1. 40 位 hex 格式：0123456789abcdef...
    2. 32 位 base32 格式：AAAAAAAAAAAAAAAA...（自动转换为 hex）

    Args:
        magnet: magnet 链接字符串，格式如 magnet:?xt=urn:btih:<hash>

    Returns:
        40 位小写 hex 字符串，解析失败返回 None

    Examples:
        >>> parse_info_hash_from_magnet("magnet:?xt=urn:btih:0123456789abcdef0123456789abcdef01234567")
        '0123456789abcdef0123456789abcdef01234567'

        >>> parse_info_hash_from_magnet("invalid")
        None
    """
    if not magnet or not isinstance(magnet, str):
        return None

    # hex: 40 位 0-9a-fA-F；base32: 32 位 A-Z2-7
    match = re.search(
        r"xt=urn:btih:([a-fA-F0-9]{40}|[A-Z2-7]{32})(?![A-Za-z0-9])",
        magnet,
        re.IGNORECASE,
    )
    if not match:
        return None

    hash_str = match.group(1)

    if len(hash_str) == 40:
        return hash_str.lower()

    try:
        hash_bytes = base64.b32decode(hash_str.upper())
    except ValueError:
        return None
    return hash_bytes.hex().lower()
