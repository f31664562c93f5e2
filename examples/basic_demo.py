"""Example usage of Agent with the sample tools."""
import asyncio
import sys

from agent_loop import Agent, AgentCallbacks, AgentSettings
from agent_loop.logging import configure_logging
from agent_loop.providers import ProviderCache
from agent_loop.telemetry import with_tracing
from agent_loop.tools.sample_tools import create_sample_registry


async def main(provider_name: str = "anthropic"):
    """Run one tool-calling query and one streamed query."""
    print("=" * 80)
    print("Agent Loop - Sample Tools Example")
    print("=" * 80)

    settings = AgentSettings.from_env()
    configure_logging(settings.log_config())

    callbacks = AgentCallbacks(
        on_tool_start=lambda ctx, name, args: print(f"\n[tool] {name}({args})"),
        on_tool_end=lambda ctx, name, result: print(f"[tool] {name} -> {result.to_dict()}"),
        on_retry=lambda attempt, delay_ms: print(f"[retry] attempt {attempt} in {delay_ms} ms"),
        on_error=lambda ctx, error: print(f"[error] {error.to_dict()}"),
    )

    cache = ProviderCache()
    provider = cache.get(provider_name)
    # Spans are recorded once an OpenTelemetry SDK is configured
    callbacks = with_tracing(callbacks, provider_name=provider.name, model_name=provider.model)
    agent = Agent(
        provider,
        system_prompt="You are a helpful assistant that can perform mathematical calculations. "
                      "Use the available tools to solve math problems.",
        tools=create_sample_registry(),
        callbacks=callbacks,
        settings=settings,
    )

    test_prompt = "Calculate (15 + 27) / 3. Show your work step by step."
    print(f"\nUser Query: {test_prompt}\n")

    result = await agent.run_with_result(test_prompt)

    print("-" * 80)
    print(result.answer)
    print("-" * 80)
    print(f"LLM calls: {result.llm_call_count}, tools executed: {result.tools_executed}")
    print(f"Usage: {result.usage.to_dict()}")

    print("\nStreaming (tools disabled):")
    async for chunk in agent.run_stream("Summarize what you just computed in one sentence."):
        print(chunk, end="", flush=True)
    print()


if __name__ == "__main__":
    asyncio.run(main(*sys.argv[1:2]))
