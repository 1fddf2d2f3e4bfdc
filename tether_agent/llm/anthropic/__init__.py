from tether_agent.llm.anthropic.chat import ChatAnthropic

__all__ = ["ChatAnthropic"]
