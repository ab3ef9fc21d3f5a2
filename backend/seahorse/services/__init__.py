"""
Services Package

Contains the core business logic services of the agent:
- Agent: initialization state machine, question routing and streaming
- ChatModel: chat-generation capability (Gemini or offline mock)
- PromptChain: prompt templates piped into the chat model
- ProviderRegistry: read-only provider registry clients
- TokenStream: fan-out of streamed tokens to listeners
- ConnectionManager: WebSocket connection and session management
"""

from seahorse.services.agent import Agent, AgentContext, AgentState
from seahorse.services.chains import PromptChain, build_default_chain, build_rag_chain
from seahorse.services.connection_manager import ChatSession, ConnectionManager
from seahorse.services.llm import ChatMessage, ChatModel, GeminiChatModel, MockChatModel, create_chat_model
from seahorse.services.registry import (
    InMemoryProviderRegistry,
    NearProviderRegistry,
    ProviderRegistry,
    create_provider_registry,
)
from seahorse.services.streaming import TokenEvent, TokenStream

__all__ = [
    # Agent
    "Agent",
    "AgentContext",
    "AgentState",
    # Chains
    "PromptChain",
    "build_default_chain",
    "build_rag_chain",
    # Connection Manager
    "ConnectionManager",
    "ChatSession",
    # Chat models
    "ChatMessage",
    "ChatModel",
    "GeminiChatModel",
    "MockChatModel",
    "create_chat_model",
    # Registry
    "InMemoryProviderRegistry",
    "NearProviderRegistry",
    "ProviderRegistry",
    "create_provider_registry",
    # Streaming
    "TokenEvent",
    "TokenStream",
]
