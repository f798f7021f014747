"""Named prompt templates that give each entity its specialized operations.

Entities differ only in configuration: an entity's specialized methods are
PromptTemplate entries in its YAML definition rather than subclass methods.
"""

import string
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class PromptTemplate(BaseModel):
    """One specialized operation of an entity.

    template uses str.format placeholders; every placeholder must be either
    listed in required or given a default in defaults.
    """

    model_config = ConfigDict(frozen=True)

    description: str = ""
    template: str
    required: List[str] = Field(default_factory=list)
    defaults: Dict[str, str] = Field(default_factory=dict)

    # Notification sent before the prompt runs; may use the same placeholders
    announce: Optional[str] = None

    # Approval before running when params[sensitive_param] is a sensitive value
    sensitive_param: Optional[str] = None
    sensitive_approval: Optional[str] = None
    sensitive_details: str = "Confirm deployment"
    sensitive_options: List[str] = Field(default_factory=lambda: ["Deploy", "Cancel"])

    # Approval after a successful run (review-before-apply outputs)
    approval_after: Optional[str] = None
    approval_after_details: str = "Review before applying"

    @model_validator(mode="after")
    def placeholders_declared(self) -> "PromptTemplate":
        declared = set(self.required) | set(self.defaults)
        missing = self.placeholders() - declared
        if missing:
            raise ValueError(
                f"Template placeholders not declared in required/defaults: {sorted(missing)}"
            )
        if self.sensitive_param and self.sensitive_param not in declared:
            raise ValueError(f"sensitive_param '{self.sensitive_param}' is not a template parameter")
        return self

    def placeholders(self) -> set:
        names = set()
        texts = (
            self.template, self.announce,
            self.sensitive_approval, self.sensitive_details,
            self.approval_after, self.approval_after_details,
        )
        for text in texts:
            if not text:
                continue
            for _, field_name, _, _ in string.Formatter().parse(text):
                if field_name:
                    names.add(field_name)
        return names

    def resolve_params(self, params: Dict[str, object]) -> Dict[str, str]:
        """Merge defaults and check required parameters.

        Raises:
            ValueError: If a required parameter is missing
        """
        merged = {**self.defaults, **{k: _as_text(v) for k, v in params.items()}}
        missing = [name for name in self.required if name not in merged]
        if missing:
            raise ValueError(f"Missing parameters: {', '.join(missing)}")
        return merged

    def build(self, **params) -> str:
        return self.template.format(**self.resolve_params(params))

    def render(self, text: Optional[str], params: Dict[str, str]) -> Optional[str]:
        return text.format(**params) if text else None

    def is_sensitive(self, params: Dict[str, str], sensitive_values) -> bool:
        if not self.sensitive_param:
            return False
        return params.get(self.sensitive_param) in set(sensitive_values)


def _as_text(value: object) -> str:
    # Lists become bullet lines, matching how backlog items are fed to the engine
    if isinstance(value, (list, tuple)):
        return "\n".join(f"- {item}" for item in value)
    return str(value)


def fix_issue_prompt(number: int, title: str, body: str, role: str) -> str:
    """Prompt for fixing a tracked issue."""
    return (
        f"Fix this issue as the team's {role}:\n\n"
        f"**Issue #{number}:** {title}\n\n"
        f"**Description:**\n{body or '(no description)'}\n\n"
        "**Instructions:**\n"
        "1. Read the relevant code\n"
        "2. Identify the root cause\n"
        "3. Implement a minimal fix\n"
        "4. Keep behaviour outside the fix unchanged\n"
        "5. DO NOT add unnecessary changes\n"
    )
