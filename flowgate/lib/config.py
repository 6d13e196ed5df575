"""
Project configuration consulted by the checkers.

The document lives at ``.workflow/config.json`` (or ``config.yaml`` /
``config.yml``) and is owned by the workflow's setup commands. Only the
fields the checkers read are modelled; everything else is ignored. Defaults
mirror what a freshly initialised project gets, so a missing document means
"fully enforced".
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_COMPONENT_PATTERNS = ["**/components/**", "**/ui/**", "**/src/components/**"]


class ConfigModel(BaseModel):
    """Base for config sections: camelCase on disk, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class EnforcementConfig(ConfigModel):
    strict_mode: bool = True
    require_task_for_implementation: bool = True


class RuleToggle(ConfigModel):
    enabled: bool = True


class TaskGatingRule(RuleToggle):
    block_without_task: bool = True


class ValidationRule(RuleToggle):
    # Pattern (fnmatch) -> commands; "{file}" is replaced by the edited path
    commands: dict[str, list[str]] = Field(default_factory=dict)
    timeout_ms: int = 30000
    block_on_failure: bool = False


class ComponentReuseRule(RuleToggle):
    threshold: int = 80
    block_on_similar: bool = False
    patterns: list[str] | None = None


class SessionContextRule(RuleToggle):
    load_suspended_tasks: bool = True
    load_decisions: bool = True
    load_recent_activity: bool = True


class HookRules(ConfigModel):
    task_gating: TaskGatingRule = Field(default_factory=TaskGatingRule)
    validation: ValidationRule = Field(default_factory=ValidationRule)
    loop_enforcement: RuleToggle = Field(default_factory=RuleToggle)
    component_reuse: ComponentReuseRule = Field(default_factory=ComponentReuseRule)
    session_context: SessionContextRule = Field(default_factory=SessionContextRule)
    auto_logging: RuleToggle = Field(default_factory=RuleToggle)


class HooksConfig(ConfigModel):
    enabled: bool = True
    targets: list[str] = Field(default_factory=lambda: ["claude"])
    rules: HookRules = Field(default_factory=HookRules)


class LoopsConfig(ConfigModel):
    enabled: bool = True
    enforced: bool = True
    max_retries: int = 5
    max_iterations: int = 20


class TaskQueueConfig(ConfigModel):
    enabled: bool = True
    pause_between_tasks: bool = False


class DurableStepsConfig(ConfigModel):
    default_max_attempts: int = 5


class AfterFileEditConfig(ConfigModel):
    commands: dict[str, list[str]] = Field(default_factory=dict)


class LegacyValidationConfig(ConfigModel):
    after_file_edit: AfterFileEditConfig = Field(default_factory=AfterFileEditConfig)


class ComponentRulesConfig(ConfigModel):
    directories: list[str] | None = None


class QualityGate(ConfigModel):
    require: list[str] = Field(default_factory=list)


class FlowConfig(ConfigModel):
    """Root of the project configuration document."""

    project_name: str | None = None
    enforcement: EnforcementConfig = Field(default_factory=EnforcementConfig)
    hooks: HooksConfig = Field(default_factory=HooksConfig)
    loops: LoopsConfig = Field(default_factory=LoopsConfig)
    task_queue: TaskQueueConfig = Field(default_factory=TaskQueueConfig)
    durable_steps: DurableStepsConfig = Field(default_factory=DurableStepsConfig)
    validation: LegacyValidationConfig = Field(default_factory=LegacyValidationConfig)
    component_rules: ComponentRulesConfig = Field(default_factory=ComponentRulesConfig)
    quality_gates: dict[str, QualityGate] = Field(default_factory=dict)

    def quality_gates_for(self, task_type: str | None) -> list[str]:
        """Quality gates required for a task type (``feature`` when unknown)."""
        gate = self.quality_gates.get(task_type or "feature")
        return list(gate.require) if gate else []

    def component_patterns(self) -> list[str]:
        return (
            self.hooks.rules.component_reuse.patterns
            or self.component_rules.directories
            or list(DEFAULT_COMPONENT_PATTERNS)
        )

    def validation_command_map(self) -> dict[str, list[str]]:
        """Pattern -> commands, hook rules first, legacy section second."""
        return self.hooks.rules.validation.commands or self.validation.after_file_edit.commands
