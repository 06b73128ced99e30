"""Unit tests for prompts module."""

from cardstack.services.prompts import ASSISTANT_SYSTEM_PROMPT, format_system_prompt


class TestPromptTemplate:
    """Tests for the raw prompt template."""

    def test_has_placeholder(self):
        """Template should accept additional instructions."""
        assert "{additional_instructions}" in ASSISTANT_SYSTEM_PROMPT

    def test_mentions_bulk_tool(self):
        """Multiple cards should go through the bulk tool."""
        assert "bulk_create_flashcards" in ASSISTANT_SYSTEM_PROMPT


class TestFormatSystemPrompt:
    """Tests for format_system_prompt."""

    def test_without_additions(self):
        prompt = format_system_prompt()

        assert "{" not in prompt
        assert prompt.endswith("not the raw ids.")

    def test_additions_are_appended(self):
        prompt = format_system_prompt("  Answer in Spanish.  ")

        assert prompt.endswith("\n\nAnswer in Spanish.")
