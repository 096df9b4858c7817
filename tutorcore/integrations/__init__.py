"""
Integrations: clients for external collaborators.

- llm_client: async text-generation client with template fallback
"""

from tutorcore.integrations.llm_client import LLMClient, extract_json_object

__all__ = ["LLMClient", "extract_json_object"]
