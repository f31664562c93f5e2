"""OpenTelemetry GenAI semantic convention names.

See https://opentelemetry.io/docs/specs/semconv/gen-ai/gen-ai-spans/
"""

# Operation
ATTR_GEN_AI_OPERATION_NAME = "gen_ai.operation.name"
ATTR_GEN_AI_PROVIDER_NAME = "gen_ai.provider.name"
ATTR_GEN_AI_CONVERSATION_ID = "gen_ai.conversation.id"

# Model
ATTR_GEN_AI_REQUEST_MODEL = "gen_ai.request.model"

# Usage
ATTR_GEN_AI_USAGE_INPUT_TOKENS = "gen_ai.usage.input_tokens"
ATTR_GEN_AI_USAGE_OUTPUT_TOKENS = "gen_ai.usage.output_tokens"

# Tools
ATTR_GEN_AI_TOOL_NAME = "gen_ai.tool.name"
ATTR_GEN_AI_TOOL_CALL_ID = "gen_ai.tool.call.id"
ATTR_GEN_AI_TOOL_CALL_ARGUMENTS = "gen_ai.tool.call.arguments"  # sensitive
ATTR_GEN_AI_TOOL_CALL_RESULT = "gen_ai.tool.call.result"        # sensitive

# Content (sensitive)
ATTR_GEN_AI_INPUT_MESSAGES = "gen_ai.input.messages"
ATTR_GEN_AI_OUTPUT_MESSAGES = "gen_ai.output.messages"

# Standard OTel
ATTR_ERROR_TYPE = "error.type"

OPERATION_CHAT = "chat"
OPERATION_EXECUTE_TOOL = "execute_tool"
OPERATION_INVOKE_AGENT = "invoke_agent"

# Error type for spans still open when their run ends
ERROR_AGENT_ENDED_EARLY = "AgentEndedEarly"
