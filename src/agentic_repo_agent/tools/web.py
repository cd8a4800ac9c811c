"""Lightweight HTTP reachability checks (no browser)."""

from typing import Optional

import httpx

from agentic_repo_agent.constants import HTTP_TIMEOUT_S
from agentic_repo_agent.tools.context import ToolContext
from agentic_repo_agent.tools.result import ToolResult, fail, ok


async def fetch(ctx: ToolContext, url: str, expected_content: Optional[str], timeout: float) -> ToolResult:
    """GET url and report reachability plus an optional substring match."""
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=ctx.http_transport) as client:
            response = await client.get(url)
    except httpx.TimeoutException:
        return fail(f"Request timed out after {timeout:g}s", url=url)
    except httpx.HTTPError as e:
        return fail(f"Request failed: {e}", url=url)
    
    body = response.text
    accessible = 200 <= response.status_code < 400
    content_match = expected_content in body if expected_content else True
    
    return ok(
        url=url,
        statusCode=response.status_code,
        accessible=accessible,
        contentMatch=content_match,
        bodyLength=len(body),
        hasExpectedContent=content_match if expected_content else "not checked",
    )


async def verify_url(
    ctx: ToolContext,
    url: str,
    expected_content: Optional[str] = None,
    timeout: float = HTTP_TIMEOUT_S,
) -> ToolResult:
    if not (url.startswith("http://") or url.startswith("https://")):
        return fail(f"Only http(s) URLs can be verified: {url}")
    return await fetch(ctx, url, expected_content, timeout)


def verification_passed(result: ToolResult) -> bool:
    """A check passes when the target answered 2xx/3xx and the content matched."""
    if result.failed or not result.data:
        return False
    return bool(result.data.get("accessible")) and result.data.get("contentMatch") is not False
