"""Conversational chatbot built from LangChain chat models, prompts, history and retrievers."""
