from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FakeCapture, FakeResponse, FakeRunner
from pipeline.errors import (
    AirGapError,
    ExecutableNotFoundError,
    ExecutionError,
    NotFoundError,
    VersionNotFoundError,
)
from tools.bridge import BundleVariant, EngineClient, Executor, ThinVariant, create_bridge_client
from tools.bridge.client import DONE, READY
from tools.platform_info import ARM64, LINUX, PlatformInfo

REPO = "https://repo.example/bridge/"
BUNDLE_LATEST = REPO + "bridge-cli-bundle/latest/versions.txt"
BUNDLE_ZIP = REPO + "bridge-cli-bundle/1.4.0/bridge-cli-bundle-1.4.0-linux64.zip"
THIN_LATEST = REPO + "bridge-cli-thin-client/latest/versions.txt"
THIN_ZIP = REPO + "bridge-cli-thin-client/1.1.0/bridge-cli-linux64.zip"

LISTING = '<pre><a href="1.2.0/">1.2.0/</a>\n<a href="1.4.0/">1.4.0/</a>\n</pre>'


@pytest.fixture
def inputs(tmp_path: Path) -> dict:
    return {"bridgecli_install_directory": str(tmp_path / "install"), "bridge_cli_custom_artifactory_url": REPO}


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


def _client(config, transport, platform, runner, variant=None, capture=None) -> EngineClient:
    return EngineClient(
        variant or BundleVariant(),
        config,
        transport=transport,
        platform_info=platform,
        executor=Executor(runner=runner),
        capture=capture or FakeCapture(),
        runner_os="Linux",
    )


def _bundle_zip(zip_factory, tmp_path: Path, version: str = "1.4.0") -> bytes:
    root = f"bridge-cli-bundle-{version}-linux64"
    return zip_factory(
        tmp_path / "fixtures" / f"{root}.zip",
        {f"{root}/bridge-cli": "#!/bin/sh\n", f"{root}/versions.txt": f"bridge-cli-bundle: {version}\n"},
    )


def _cached_bundle(install: Path, version: str = "1.4.0") -> Path:
    folder = install / "bridge-cli-bundle" / "bridge-cli-bundle-linux64"
    folder.mkdir(parents=True)
    (folder / "versions.txt").write_text(f"bridge-cli-bundle: {version}\n", encoding="utf-8")
    (folder / "bridge-cli").write_text("#!/bin/sh\n", encoding="utf-8")
    return folder


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------


def test_latest_bundle_is_downloaded_and_extracted(
    inputs, make_config, session, transport, linux_x64, runner, zip_factory, tmp_path: Path
) -> None:
    session.add("GET", BUNDLE_LATEST, FakeResponse(200, b"bridge-cli-bundle: 1.4.0\n"))
    session.add("GET", BUNDLE_ZIP, FakeResponse(200, _bundle_zip(zip_factory, tmp_path)))
    client = _client(make_config(**inputs), transport, linux_x64, runner)

    descriptor = client.provision(tmp_path / "tmp")

    install = tmp_path / "install" / "bridge-cli-bundle" / "bridge-cli-bundle-linux64"
    assert descriptor.version == "1.4.0"
    assert descriptor.install_path == install
    assert descriptor.executable_path == install / "bridge-cli"
    assert (install / "versions.txt").read_text(encoding="utf-8").strip() == "bridge-cli-bundle: 1.4.0"
    assert client.state == READY
    assert not list(install.parent.glob(".extract-*"))


def test_matching_install_is_not_downloaded_again(
    inputs, make_config, session, transport, linux_x64, runner, tmp_path: Path
) -> None:
    _cached_bundle(tmp_path / "install")
    session.add("GET", BUNDLE_LATEST, FakeResponse(200, b"bridge-cli-bundle: 1.4.0\n"))
    client = _client(make_config(**inputs), transport, linux_x64, runner)

    descriptor = client.provision(tmp_path / "tmp")

    assert descriptor.version == "1.4.0"
    assert session.calls_to("GET", BUNDLE_ZIP) == []


def test_older_install_is_replaced(
    inputs, make_config, session, transport, linux_x64, runner, zip_factory, tmp_path: Path
) -> None:
    stale = _cached_bundle(tmp_path / "install", version="1.2.0")
    (stale / "old-only.txt").write_text("x", encoding="utf-8")
    session.add("GET", BUNDLE_LATEST, FakeResponse(200, b"bridge-cli-bundle: 1.4.0\n"))
    session.add("GET", BUNDLE_ZIP, FakeResponse(200, _bundle_zip(zip_factory, tmp_path)))

    _client(make_config(**inputs), transport, linux_x64, runner).provision(tmp_path / "tmp")

    assert not (stale / "old-only.txt").exists()
    assert "1.4.0" in (stale / "versions.txt").read_text(encoding="utf-8")


def test_airgap_uses_cached_engine_without_network(
    inputs, make_config, session, transport, linux_x64, runner, tmp_path: Path
) -> None:
    _cached_bundle(tmp_path / "install")
    client = _client(make_config(network_airgap="true", **inputs), transport, linux_x64, runner)

    descriptor = client.provision(tmp_path / "tmp")

    assert descriptor.version == "1.4.0"
    assert session.calls == []


def test_airgap_without_cached_engine_fails(inputs, make_config, session, transport, linux_x64, runner, tmp_path) -> None:
    client = _client(make_config(network_airgap="true", **inputs), transport, linux_x64, runner)

    with pytest.raises(AirGapError):
        client.provision(tmp_path / "tmp")
    assert session.calls == []


def test_airgap_explicit_bundle_version_needs_download_url(
    inputs, make_config, transport, linux_x64, runner, tmp_path: Path
) -> None:
    cfg = make_config(network_airgap="true", bridgecli_download_version="1.2.0", **inputs)

    with pytest.raises(AirGapError):
        _client(cfg, transport, linux_x64, runner).provision(tmp_path / "tmp")


def test_unpublished_version_is_rejected(inputs, make_config, session, transport, linux_x64, runner, tmp_path) -> None:
    session.add("GET", REPO + "bridge-cli-bundle/", FakeResponse(200, LISTING.encode()))
    cfg = make_config(bridgecli_download_version="9.9.9", **inputs)

    with pytest.raises(VersionNotFoundError):
        _client(cfg, transport, linux_x64, runner).provision(tmp_path / "tmp")


def test_published_version_downloads_versioned_asset(
    inputs, make_config, session, transport, linux_x64, runner, zip_factory, tmp_path: Path
) -> None:
    session.add("GET", REPO + "bridge-cli-bundle/", FakeResponse(200, LISTING.encode()))
    session.add("GET", BUNDLE_ZIP, FakeResponse(200, _bundle_zip(zip_factory, tmp_path)))
    cfg = make_config(bridgecli_download_version="1.4.0", **inputs)

    descriptor = _client(cfg, transport, linux_x64, runner).provision(tmp_path / "tmp")

    assert descriptor.version == "1.4.0"
    assert len(session.calls_to("GET", BUNDLE_ZIP)) == 1


def test_download_url_404_reports_runner_os(inputs, make_config, session, transport, linux_x64, runner, tmp_path) -> None:
    url = REPO + "bridge-cli-bundle/1.4.0/bridge-cli-bundle-1.4.0-macosx.zip"
    cfg = make_config(bridgecli_download_url=url, **inputs)

    with pytest.raises(NotFoundError) as ei:
        _client(cfg, transport, linux_x64, runner).provision(tmp_path / "tmp")

    assert ei.value.message == "Provided Bridge CLI url is not valid for the configured Linux runner"
    assert len(session.calls_to("GET", url)) == 1


def test_download_url_without_version_reads_sibling_manifest(
    inputs, make_config, session, transport, linux_x64, runner, zip_factory, tmp_path: Path
) -> None:
    url = "https://mirror.example/bridge/custom.zip"
    session.add("GET", "https://mirror.example/bridge/versions.txt", FakeResponse(200, b"bridge-cli-bundle: 1.4.0\n"))
    session.add("GET", url, FakeResponse(200, _bundle_zip(zip_factory, tmp_path)))
    cfg = make_config(bridgecli_download_url=url, **inputs)

    descriptor = _client(cfg, transport, linux_x64, runner).provision(tmp_path / "tmp")

    assert descriptor.version == "1.4.0"
    assert descriptor.executable_path.is_file()


def test_arm_falls_back_to_x64_asset_for_old_versions(inputs, make_config, transport, runner) -> None:
    client = _client(make_config(**inputs), transport, PlatformInfo(os=LINUX, arch=ARM64), runner)

    assert client.versioned_url("3.4.0").endswith("/3.4.0/bridge-cli-bundle-3.4.0-linux64.zip")
    assert client.versioned_url("3.5.1").endswith("/3.5.1/bridge-cli-bundle-3.5.1-linux_arm.zip")


def test_execute_returns_engine_exit_code(inputs, make_config, transport, linux_x64, tmp_path: Path) -> None:
    _cached_bundle(tmp_path / "install")
    runner = FakeRunner(exit_codes=[8])
    client = _client(make_config(**inputs), transport, linux_x64, runner)

    code = client.execute(["--stage", "polaris"], cwd=tmp_path)

    assert code == 8
    assert client.state == DONE
    assert runner.calls == [([str(client.executable_path), "--stage", "polaris"], tmp_path)]


def test_missing_executable_is_reported_with_install_path(tmp_path: Path) -> None:
    with pytest.raises(ExecutableNotFoundError) as ei:
        Executor(runner=FakeRunner()).execute(tmp_path / "bridge-cli", [], install_path=tmp_path)

    assert ei.value.install_path == str(tmp_path)
    assert ei.value.exit_code == -1


# ---------------------------------------------------------------------------
# Thin client
# ---------------------------------------------------------------------------


def _cached_thin(install: Path) -> Path:
    folder = install / "bridge-cli-thin-client" / "bridge-cli-linux64"
    folder.mkdir(parents=True)
    (folder / "bridge-cli").write_text("#!/bin/sh\n", encoding="utf-8")
    return folder


def test_factory_selects_variant(inputs, make_config, transport, linux_x64) -> None:
    bundle = create_bridge_client(make_config(**inputs), transport=transport, platform_info=linux_x64)
    thin = create_bridge_client(
        make_config(thin_client_enabled="true", **inputs), transport=transport, platform_info=linux_x64
    )

    assert isinstance(bundle.variant, BundleVariant)
    assert isinstance(thin.variant, ThinVariant)
    assert thin.install_path.parts[-2:] == ("bridge-cli-thin-client", "bridge-cli-linux64")


def test_latest_thin_client_is_downloaded(
    inputs, make_config, session, transport, linux_x64, runner, zip_factory, tmp_path: Path
) -> None:
    session.add("GET", THIN_LATEST, FakeResponse(200, b"bridge-cli-thin-client: 1.1.0\n"))
    session.add("GET", THIN_ZIP, FakeResponse(200, zip_factory(tmp_path / "thin.zip", {"bridge-cli": "#!/bin/sh\n"})))
    cfg = make_config(thin_client_enabled="true", **inputs)

    descriptor = _client(cfg, transport, linux_x64, runner, variant=ThinVariant()).provision(tmp_path / "tmp")

    assert descriptor.kind == "thin"
    assert descriptor.version == "1.1.0"
    assert descriptor.executable_path.is_file()


def test_thin_register_runs_before_the_scan(inputs, make_config, transport, linux_x64, tmp_path: Path) -> None:
    _cached_thin(tmp_path / "install")
    runner = FakeRunner()
    cfg = make_config(thin_client_enabled="true", register_url="https://reg.example/api", **inputs)
    client = _client(cfg, transport, linux_x64, runner, variant=ThinVariant())

    client.execute(["--stage", "srm"], cwd=tmp_path)

    exe = str(client.executable_path)
    assert [cmd for cmd, _ in runner.calls] == [
        [exe, "--register", "https://reg.example/api"],
        [exe, "--stage", "srm"],
    ]


def test_thin_register_failure_stops_the_run(inputs, make_config, transport, linux_x64, tmp_path: Path) -> None:
    _cached_thin(tmp_path / "install")
    runner = FakeRunner(exit_codes=[3, 0])
    cfg = make_config(thin_client_enabled="true", register_url="https://reg.example/api", **inputs)
    client = _client(cfg, transport, linux_x64, runner, variant=ThinVariant())

    with pytest.raises(ExecutionError) as ei:
        client.execute(["--stage", "srm"], cwd=tmp_path)

    assert ei.value.exit_code == 3
    assert len(runner.calls) == 1


def test_thin_airgap_explicit_version_switches_with_use(
    inputs, make_config, session, transport, linux_x64, tmp_path: Path
) -> None:
    _cached_thin(tmp_path / "install")
    runner = FakeRunner()
    capture = FakeCapture(stdout="1.0.0\n")
    cfg = make_config(
        thin_client_enabled="true", network_airgap="true", bridgecli_download_version="1.2.0", **inputs
    )
    client = _client(cfg, transport, linux_x64, runner, variant=ThinVariant(), capture=capture)

    descriptor = client.provision(tmp_path / "tmp")

    assert descriptor.version == "1.2.0"
    assert runner.calls[0][0][1:] == ["--use", "bridge-cli@1.2.0"]
    assert session.calls == []


def test_thin_matching_version_skips_everything(inputs, make_config, session, transport, linux_x64, tmp_path) -> None:
    _cached_thin(tmp_path / "install")
    runner = FakeRunner()
    cfg = make_config(thin_client_enabled="true", bridgecli_download_version="1.2.0", **inputs)
    client = _client(cfg, transport, linux_x64, runner, variant=ThinVariant(), capture=FakeCapture(stdout="1.2.0"))

    assert client.provision(tmp_path / "tmp").version == "1.2.0"
    assert runner.calls == []
    assert session.calls == []
