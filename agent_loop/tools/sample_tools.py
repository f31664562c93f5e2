"""Sample tools demonstrating the @tool decorator and the tool response shapes."""
import asyncio

from ..errors import ToolErrorCode
from .base import ToolContext, ToolFailure, ToolRegistry, ToolSuccess
from .decorators import tool


@tool
def echo(text: str) -> str:
    """Echo the given text back unchanged.

    Args:
        text: Text to echo
    """
    return text


@tool
def add(a: float, b: float) -> str:
    """Add two numbers together and return the sum.

    Args:
        a: The first number to add
        b: The second number to add
    """
    return str(a + b)


@tool
def divide(a: float, b: float):
    """Divide the first number by the second number.

    Returns a structured response so callers can tell a division by zero
    apart from a result.

    Args:
        a: The dividend
        b: The divisor
    """
    if b == 0:
        return ToolFailure(ToolErrorCode.VALIDATION_ERROR, "Cannot divide by zero")
    return ToolSuccess(result=a / b, message=f"Divided {a} by {b}")


@tool
async def wait(seconds: float, ctx: ToolContext) -> str:
    """Wait for a number of seconds, stopping early if the run is aborted.

    Args:
        seconds: How long to wait
    """
    ctx.metadata({"title": f"Waiting {seconds}s"})
    loop = asyncio.get_running_loop()
    deadline = loop.time() + seconds
    while loop.time() < deadline:
        if ctx.aborted:
            return "Wait aborted"
        await asyncio.sleep(min(0.05, max(0.0, deadline - loop.time())))
    return f"Waited {seconds} seconds"


SAMPLE_TOOLS = [echo, add, divide, wait]


def create_sample_registry() -> ToolRegistry:
    """Create a ToolRegistry holding the sample tools."""
    return ToolRegistry(SAMPLE_TOOLS)
