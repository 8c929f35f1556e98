from __future__ import annotations

import html as _html
import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

# soap:Fault / s:Fault / 不带前缀的 Fault 都认
_FAULT_RE = re.compile(r"<(?:[A-Za-z0-9_]+:)?Fault[\s>]")


def extract_result(xml_text: str, tag_name: str) -> str:
    """
    取第一个 <tag_name> 和第一个 </tag_name> 之间的原始文本

    - 纯子串扫描，不是 XML 解析：同名嵌套标签、开始标签带属性都不处理
      （服务端返回结构固定，这个限制可以接受）
    - 标签名大小写敏感
    - 找不到 / 结束标签在开始标签前面 -> 返回 ""（当作“没结果”，不是错误）
    """
    text = xml_text or ""
    start_tag = f"<{tag_name}>"
    end_tag = f"</{tag_name}>"

    start = text.find(start_tag)
    end = text.find(end_tag)
    if start == -1 or end == -1 or end < start:
        logger.warning("SOAP 响应里没找到标签: %s", tag_name)
        return ""

    inner_start = start + len(start_tag)
    if end < inner_start:
        return ""
    return text[inner_start:end]


def extract_text(xml_text: str, tag_name: str) -> str:
    """
    extract_result + 反转义一次：结果标签里的 JSON 是 XML 文本内容，服务端按 XML 规则转义过
    （& < > 以及偶尔的 &quot;）。只转一次，转两次会把原文里的 "&amp;" 也吃掉。
    """
    return _html.unescape(extract_result(xml_text, tag_name))


def find_fault(xml_text: str) -> Optional[str]:
    """响应是 SOAP Fault 时返回 faultstring（没有 faultstring 时返回空串），否则 None"""
    text = xml_text or ""
    if not _FAULT_RE.search(text):
        return None
    fault = extract_result(text, "faultstring")
    return _html.unescape(fault).strip()
