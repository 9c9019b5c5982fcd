"""
Pydantic schemas for environments and variables.

EnvironmentConfig is both the persisted environments document and the owner
of its invariants: environment names are unique, variable keys are unique
within an environment, and the active environment name is either empty or
refers to an existing environment. Every mutation method returns a new,
validated config.
"""

from pydantic import BaseModel, Field, model_validator

from ..exceptions import ValidationError
from ._common import CURRENT_VERSION


class Variable(BaseModel):
    """A key/value pair referenced as {{key}} in requests."""
    key: str
    value: str = ""


class Environment(BaseModel):
    """A named set of variables."""
    name: str
    variables: list[Variable] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_keys(self) -> "Environment":
        seen: set[str] = set()
        for variable in self.variables:
            if variable.key in seen:
                raise ValueError(f"duplicate variable key: {variable.key}")
            seen.add(variable.key)
        return self

    def as_pairs(self) -> list[tuple[str, str]]:
        return [(v.key, v.value) for v in self.variables]


class EnvironmentConfig(BaseModel):
    """The environments document."""
    version: str = CURRENT_VERSION
    environments: list[Environment] = Field(default_factory=list)
    active_environment: str = ""

    @model_validator(mode="after")
    def _check_invariants(self) -> "EnvironmentConfig":
        names = [env.name for env in self.environments]
        if len(names) != len(set(names)):
            raise ValueError("environment names must be unique")
        if self.active_environment and self.active_environment not in names:
            raise ValueError(
                f"active environment '{self.active_environment}' does not exist"
            )
        return self

    def get(self, name: str) -> Environment | None:
        for env in self.environments:
            if env.name == name:
                return env
        return None

    @property
    def active(self) -> Environment | None:
        if not self.active_environment:
            return None
        return self.get(self.active_environment)

    def active_variables(self) -> list[Variable]:
        env = self.active
        return list(env.variables) if env else []

    def _replace(self, **changes) -> "EnvironmentConfig":
        data = self.model_dump()
        data.update(changes)
        return EnvironmentConfig.model_validate(data)

    def save_environment(
        self,
        original_name: str | None,
        name: str,
        variables: list[Variable],
    ) -> "EnvironmentConfig":
        """
        Create or update an environment.

        Args:
            original_name: Name of the environment being edited, None for a new one
            name: New name for the environment
            variables: Complete variable list for the environment

        Raises:
            ValidationError: if the name is empty, clashes with another
                environment, or the original environment no longer exists
        """
        name = name.strip()
        if not name:
            raise ValidationError("Environment name cannot be empty", field="name")
        if name != original_name and self.get(name) is not None:
            raise ValidationError(f"Environment already exists: {name}", field="name")

        new_env = Environment(name=name, variables=[v.model_copy() for v in variables])
        environments = [env.model_copy(deep=True) for env in self.environments]
        active = self.active_environment

        if original_name is None:
            environments.append(new_env)
            if not active:
                active = name
        else:
            for i, env in enumerate(environments):
                if env.name == original_name:
                    environments[i] = new_env
                    break
            else:
                raise ValidationError(f"Environment not found: {original_name}")
            if active == original_name:
                active = name

        return self._replace(
            environments=[e.model_dump() for e in environments],
            active_environment=active,
        )

    def delete_environment(self, name: str) -> "EnvironmentConfig":
        """Remove an environment, clearing the active name if it pointed at it."""
        if self.get(name) is None:
            raise ValidationError(f"Environment not found: {name}")
        remaining = [env.model_dump() for env in self.environments if env.name != name]
        active = "" if self.active_environment == name else self.active_environment
        return self._replace(environments=remaining, active_environment=active)

    def set_active(self, name: str) -> "EnvironmentConfig":
        if name and self.get(name) is None:
            raise ValidationError(f"Environment not found: {name}")
        return self._replace(active_environment=name)
