"""
Property-based tests for environment management.

EnvironmentConfig must keep its invariants after every mutation: names are
unique, variable keys are unique per environment, and the active name is
either empty or names an existing environment.
"""

import pytest
from hypothesis import given, strategies as st, settings
from pydantic import ValidationError as PydanticValidationError

from api_workbench.exceptions import ValidationError
from api_workbench.schemas.environment import Environment, EnvironmentConfig, Variable


env_name_strategy = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz-_0123456789"),
    min_size=1,
    max_size=12,
)

variable_key_strategy = st.text(
    alphabet=st.sampled_from("ABCDEFGHIJKLMNOPQRSTUVWXYZ_"),
    min_size=1,
    max_size=10,
)

variables_strategy = st.dictionaries(
    keys=variable_key_strategy,
    values=st.text(max_size=20),
    max_size=5,
).map(lambda d: [Variable(key=k, value=v) for k, v in d.items()])

operation_strategy = st.one_of(
    st.tuples(st.just("create"), env_name_strategy, variables_strategy),
    st.tuples(st.just("rename"), env_name_strategy, env_name_strategy),
    st.tuples(st.just("delete"), env_name_strategy),
    st.tuples(st.just("activate"), env_name_strategy),
    st.tuples(st.just("deactivate")),
)


def assert_invariants(config: EnvironmentConfig) -> None:
    names = [env.name for env in config.environments]
    assert len(names) == len(set(names))
    for env in config.environments:
        keys = [v.key for v in env.variables]
        assert len(keys) == len(set(keys))
    assert config.active_environment == "" or config.active_environment in names


def apply_operation(config: EnvironmentConfig, operation: tuple) -> EnvironmentConfig:
    kind = operation[0]
    try:
        if kind == "create":
            return config.save_environment(None, operation[1], operation[2])
        if kind == "rename":
            env = config.get(operation[1])
            variables = env.variables if env else []
            return config.save_environment(operation[1], operation[2], variables)
        if kind == "delete":
            return config.delete_environment(operation[1])
        if kind == "activate":
            return config.set_active(operation[1])
        return config.set_active("")
    except ValidationError:
        return config


class TestProperty7EnvironmentInvariants:
    """
    Property 7: Environment invariants

    Any sequence of create, rename, delete and (de)activate operations leaves
    the configuration valid; rejected operations leave it unchanged.
    """

    @given(operations=st.lists(operation_strategy, max_size=25))
    @settings(max_examples=100)
    def test_invariants_hold_after_every_operation(self, operations: list[tuple]):
        config = EnvironmentConfig()
        for operation in operations:
            config = apply_operation(config, operation)
            assert_invariants(config)

    @given(name=env_name_strategy, variables=variables_strategy)
    @settings(max_examples=100)
    def test_deleting_the_active_environment_clears_the_active_name(self, name: str, variables: list[Variable]):
        config = EnvironmentConfig().save_environment(None, name, variables).set_active(name)

        config = config.delete_environment(name)

        assert config.active_environment == ""
        assert config.active is None

    @given(name=env_name_strategy, new_name=env_name_strategy)
    @settings(max_examples=100)
    def test_renaming_the_active_environment_keeps_it_active(self, name: str, new_name: str):
        config = EnvironmentConfig().save_environment(None, name, [])

        config = config.save_environment(name, new_name, [])

        assert config.active_environment == new_name.strip()


class TestEnvironmentOperations:

    def test_first_environment_becomes_active(self):
        config = EnvironmentConfig().save_environment(None, "dev", [Variable(key="base_url", value="http://dev")])

        assert config.active_environment == "dev"
        assert [v.value for v in config.active_variables()] == ["http://dev"]

    def test_second_environment_does_not_change_active(self):
        config = EnvironmentConfig().save_environment(None, "dev", []).save_environment(None, "prod", [])

        assert config.active_environment == "dev"

    def test_duplicate_name_is_rejected(self):
        config = EnvironmentConfig().save_environment(None, "dev", [])

        with pytest.raises(ValidationError) as exc_info:
            config.save_environment(None, "dev", [])

        assert "already exists" in exc_info.value.detail

    def test_empty_name_is_rejected(self):
        with pytest.raises(ValidationError):
            EnvironmentConfig().save_environment(None, "   ", [])

    def test_unknown_environment_cannot_be_activated(self):
        with pytest.raises(ValidationError):
            EnvironmentConfig().set_active("missing")

    def test_mutations_return_new_configs(self):
        original = EnvironmentConfig()

        updated = original.save_environment(None, "dev", [])

        assert original.environments == []
        assert len(updated.environments) == 1

    def test_duplicate_variable_keys_are_invalid(self):
        with pytest.raises(PydanticValidationError):
            Environment(name="dev", variables=[Variable(key="A"), Variable(key="A")])

    def test_dangling_active_name_is_invalid(self):
        with pytest.raises(PydanticValidationError):
            EnvironmentConfig(environments=[], active_environment="ghost")

    def test_no_active_environment_means_no_variables(self):
        config = EnvironmentConfig().save_environment(None, "dev", [Variable(key="A", value="1")]).set_active("")

        assert config.active_variables() == []
