from __future__ import annotations

import shutil
import sys
from pathlib import Path

import pytest

# uv/pytest may run without installing the project; ensure repo root is importable.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from taskchain.core.config import Config  # noqa: E402
from taskchain.ledger.gateway import Session  # noqa: E402
from taskchain.ledger.memory import DEV_ACCOUNT, InMemoryLedger  # noqa: E402
from taskchain.runtime import Runtime, build_dev_runtime  # noqa: E402


@pytest.fixture()
def temp_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture()
def test_config(temp_dir: Path) -> Config:
    """Repo defaults, copied into a temp config dir. Short timeouts for tests."""

    cfg_src = REPO_ROOT / "config" / "default.yaml"
    cfg_dst_dir = temp_dir / "config"
    cfg_dst_dir.mkdir(parents=True, exist_ok=True)

    # copy default + presets
    shutil.copy2(cfg_src, cfg_dst_dir / "default.yaml")
    shutil.copytree(REPO_ROOT / "config" / "presets", cfg_dst_dir / "presets")

    c = Config.from_yaml(cfg_dst_dir / "default.yaml")
    timeouts = c.timeouts.model_copy(update={"read_timeout_s": 1.0, "confirmation_timeout_s": 0.5, "poll_interval_s": 0.01})
    return c.model_copy(update={"config_dir": cfg_dst_dir, "timeouts": timeouts})


@pytest.fixture()
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture()
def runtime(test_config: Config, ledger: InMemoryLedger) -> Runtime:
    """Dev runtime with the dev account already connected."""

    rt = build_dev_runtime(test_config, ledger)
    assert rt.signer is not None
    rt.session = Session(account=DEV_ACCOUNT, signer=rt.signer)
    return rt


@pytest.fixture(scope="module")
def anyio_backend() -> str:
    """The code under test is built on asyncio; don't run it under other installed backends."""

    return "asyncio"
