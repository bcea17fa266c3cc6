"""
Test Plan Prompts
Prompt templates shared by every LLM provider.
"""
from typing import Tuple

from .models import Ticket


class PlanPrompts:
    """Prompts for test plan generation"""

    @staticmethod
    def get_system_prompt() -> str:
        """System prompt for full (non-streaming) generation"""
        return "You are a QA Engineer. Generate a comprehensive test plan based on the provided JIRA ticket and following the structure of the template below."

    @staticmethod
    def get_stream_system_prompt() -> str:
        return "You are a QA Engineer. Generate a comprehensive test plan."

    @staticmethod
    def get_test_plan_prompt_template() -> str:
        """Get template for the full test plan prompt"""
        return """
JIRA Ticket Data:
- Key: {key}
- Summary: {summary}
- Priority: {priority}
- Description: {description}
- Acceptance Criteria: {acceptance_criteria}

Template Structure:
{template}

Instructions:
1. Map ticket details to appropriate sections
2. Maintain template formatting
3. Add specific test scenarios based on acceptance criteria
4. Include both positive and negative test cases
5. Consider edge cases and boundary conditions

Generate a complete test plan following the template structure above."""

    @staticmethod
    def get_stream_prompt_template() -> str:
        """Get template for the shorter streaming prompt"""
        return """
JIRA Ticket: {key} - {summary}
Priority: {priority}
Description: {description}
Acceptance Criteria: {acceptance_criteria}

Template:
{template}

Generate a test plan following this template."""

    @staticmethod
    def build(ticket: Ticket, template: str, streaming: bool = False) -> Tuple[str, str]:
        """
        Build the (system, user) prompt pair for a ticket and template.

        Args:
            ticket: Normalized ticket
            template: Structured template content
            streaming: Use the shorter streaming variant

        Returns:
            Tuple of system prompt and user prompt
        """
        if streaming:
            system_prompt = PlanPrompts.get_stream_system_prompt()
            user_template = PlanPrompts.get_stream_prompt_template()
        else:
            system_prompt = PlanPrompts.get_system_prompt()
            user_template = PlanPrompts.get_test_plan_prompt_template()

        user_prompt = user_template.format(
            key=ticket.key,
            summary=ticket.summary,
            priority=ticket.priority,
            description=ticket.description,
            acceptance_criteria=ticket.acceptance_criteria or 'Not specified',
            template=template,
        )
        return system_prompt, user_prompt
