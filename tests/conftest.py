"""Pytest configuration and shared fixtures."""
import copy
import pytest
from dataclasses import dataclass, field
from typing import Dict, Optional

import objectstage.config as config_module
from objectstage import staged


@dataclass
class EditorSettings:
    """Nested settings object - serves as an attribute principal in tests."""
    tab_size: int = 4
    wrap: bool = False


@dataclass
class AppSettings:
    """Top-level settings with a nested dataclass and a free-form dict."""
    theme: str = "light"
    editor: EditorSettings = field(default_factory=EditorSettings)
    plugins: Dict[str, bool] = field(default_factory=dict)
    note: Optional[str] = None


@dataclass(frozen=True)
class FrozenSettings:
    """Frozen dataclass - fields can be neither reassigned nor deleted."""
    name: str = "frozen"
    level: int = 1


@pytest.fixture(autouse=True)
def reset_config():
    """Restore default framework configuration after each test."""
    original_prefix = config_module._reserved_prefix
    original_opaque = list(config_module._opaque_types)
    original_accessors = list(config_module._accessors)

    yield

    config_module._reserved_prefix = original_prefix
    config_module._opaque_types[:] = original_opaque
    config_module._accessors[:] = original_accessors


@pytest.fixture
def principal():
    """The canonical scenario principal."""
    return {'a': 'A', 'o': {'n': 42, 'useless': 'void'}, 'toDelete': 42}


@pytest.fixture
def snapshot(principal):
    """Deep copy of the principal taken before any staging."""
    return copy.deepcopy(principal)


@pytest.fixture
def view(principal):
    """Staging view over the canonical principal."""
    return staged(principal)


@pytest.fixture
def app_settings():
    """Attribute-object principal."""
    return AppSettings(theme="dark", editor=EditorSettings(tab_size=2), plugins={'git': True})


@pytest.fixture
def frozen_settings():
    """Frozen attribute-object principal."""
    return FrozenSettings()


def make_some_changes(target):
    """Apply the canonical mutation sequence to a dict or a staging view."""
    target['a'] = 'AA'  # update a property
    target['o']['n'] = 43
    target['x'] = {}  # add a property object
    target['y'] = {None: None}  # add a property object with nested properties
    target['o']['z'] = {'name': 'bing'}  # add nested property
    target['nn'] = 'NNNN'  # add a property value
    del target['toDelete']
    del target['o']['useless']
    target['o']['n'] = 42  # change it back


@pytest.fixture
def mutate():
    """The canonical mutation sequence."""
    return make_some_changes
