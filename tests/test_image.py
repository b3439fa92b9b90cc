import gzip
import hashlib
from pathlib import Path

import pytest
from helpers import Call, FakeRunner

from fipsbuild.errors import ImageBuildError
from fipsbuild.image import RootfsBuilder
from fipsbuild.observability import StructuredLogger
from fipsbuild.settings import BuildSettings

DPKG_LISTING = "ii  libc6  2.39-0ubuntu8  amd64  GNU C Library\n"


def _builder(
    workdir: Path,
    runner: FakeRunner,
    logger: StructuredLogger,
    **overrides: object,
) -> RootfsBuilder:
    settings = BuildSettings(workdir=workdir, **overrides)
    return RootfsBuilder(settings=settings, logger=logger, runner=runner)


def _write_cid(call: Call) -> None:
    cidfile = next(arg for arg in call.argv if arg.startswith("--cidfile="))
    Path(cidfile.removeprefix("--cidfile=")).write_text("c0ffee\n", encoding="utf-8")


def _write_export(call: Call) -> None:
    Path(call.argv[call.argv.index("-o") + 1]).write_bytes(b"rootfs tar bytes")


def test_build_args_read_package_inputs(tmp_path: Path, fake_runner: FakeRunner, logger: StructuredLogger) -> None:
    (tmp_path / "packages").mkdir()
    (tmp_path / "packages" / "cflinuxfs5").write_text("curl git\n", encoding="utf-8")
    (tmp_path / "locales").write_text("en_US.UTF-8\n", encoding="utf-8")

    args = _builder(tmp_path, fake_runner, logger).build_args()

    assert args[:4] == ["--platform", "linux/amd64", "-f", "Dockerfile"]
    assert "packages=curl git" in args
    assert "fips_packages=" in args
    assert "locales=en_US.UTF-8" in args
    assert "fips=false" in args
    assert "--secret" not in args
    assert args[-3:] == ["--no-cache", f"--iidfile={tmp_path / 'cflinuxfs5.x86_64.iid'}", "."]


def test_ubuntu_pro_build_mounts_token_file(tmp_path: Path, fake_runner: FakeRunner, logger: StructuredLogger) -> None:
    (tmp_path / ".ubuntu-pro-token").write_text("tok\n", encoding="utf-8")

    args = _builder(tmp_path, fake_runner, logger, fips=True, fips_method="ubuntu-pro").build_args()

    assert args[3] == "Dockerfile.fips"
    assert "fips_method=ubuntu-pro" in args
    secret = args[args.index("--secret") + 1]
    assert secret == f"id=ubuntu_pro_token,src={tmp_path / '.ubuntu-pro-token'}"
    assert "tok" not in " ".join(args[: args.index("--secret")])


def test_source_build_never_mounts_token(tmp_path: Path, fake_runner: FakeRunner, logger: StructuredLogger) -> None:
    (tmp_path / ".ubuntu-pro-token").write_text("tok\n", encoding="utf-8")

    builder = _builder(tmp_path, fake_runner, logger, fips=True, fips_method="source")

    assert builder.secret_arg() is None


def test_existing_image_id_skips_docker_build(tmp_path: Path, fake_runner: FakeRunner, logger: StructuredLogger) -> None:
    builder = _builder(tmp_path, fake_runner, logger)
    builder.settings.iid_file.write_text("sha256:abc\n", encoding="utf-8")

    builder.build_image()

    assert fake_runner.calls == []


def test_docker_build_uses_buildkit(tmp_path: Path, fake_runner: FakeRunner, logger: StructuredLogger) -> None:
    _builder(tmp_path, fake_runner, logger).build_image()

    call = fake_runner.calls[0]
    assert call.argv[:2] == ("docker", "build")
    assert call.env == {"DOCKER_BUILDKIT": "1"}
    assert call.cwd == str(tmp_path)


def test_docker_build_failure_is_image_error(tmp_path: Path, fake_runner: FakeRunner, logger: StructuredLogger) -> None:
    fake_runner.on("docker", "build", returncode=1, stderr="failed to solve")

    with pytest.raises(ImageBuildError) as excinfo:
        _builder(tmp_path, fake_runner, logger).build_image()

    assert excinfo.value.context["stderr"] == "failed to solve"


def test_export_writes_tarball_and_receipt(tmp_path: Path, fake_runner: FakeRunner, logger: StructuredLogger) -> None:
    fake_runner.on("docker", "run", stdout=DPKG_LISTING, effect=_write_cid)
    fake_runner.on("docker", "export", effect=_write_export)
    builder = _builder(tmp_path, fake_runner, logger)
    builder.settings.iid_file.write_text("sha256:abc\n", encoding="utf-8")

    tarball = builder.build()

    assert tarball == tmp_path / "cflinuxfs5.x86_64.tar.gz"
    assert gzip.decompress(tarball.read_bytes()) == b"rootfs tar bytes"
    digest = hashlib.sha256(tarball.read_bytes()).hexdigest()
    receipt = (tmp_path / "receipt.cflinuxfs5.x86_64").read_text(encoding="utf-8")
    assert receipt == f"Rootfs SHASUM: {digest}\n\n{DPKG_LISTING}"
    assert fake_runner.commands()[-1] == ("docker", "rm", "-f", "c0ffee")
    assert sorted(p.name for p in tmp_path.iterdir()) == [
        "cflinuxfs5.x86_64.iid",
        "cflinuxfs5.x86_64.tar.gz",
        "receipt.cflinuxfs5.x86_64",
    ]


def test_relative_workdir_paths_survive_docker_cwd(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    fake_runner: FakeRunner,
    logger: StructuredLogger,
) -> None:
    def write_iid(call: Call) -> None:
        iidfile = next(arg for arg in call.argv if arg.startswith("--iidfile="))
        (Path(call.cwd) / iidfile.removeprefix("--iidfile=")).write_text("sha256:abc\n", encoding="utf-8")

    (tmp_path / "ctx").mkdir()
    monkeypatch.chdir(tmp_path)
    fake_runner.on("docker", "build", effect=write_iid)
    fake_runner.on("docker", "run", stdout=DPKG_LISTING, effect=_write_cid)
    fake_runner.on("docker", "export", effect=_write_export)

    tarball = _builder(Path("ctx"), fake_runner, logger).build()

    assert tarball == tmp_path / "ctx" / "cflinuxfs5.x86_64.tar.gz"
    assert (tmp_path / "ctx" / "cflinuxfs5.x86_64.iid").is_file()
    assert not (tmp_path / "ctx" / "ctx").exists()


def test_export_failure_still_removes_container(tmp_path: Path, fake_runner: FakeRunner, logger: StructuredLogger) -> None:
    fake_runner.on("docker", "run", stdout=DPKG_LISTING, effect=_write_cid)
    fake_runner.on("docker", "export", returncode=1, stderr="no space left on device")
    builder = _builder(tmp_path, fake_runner, logger)
    builder.settings.iid_file.write_text("sha256:abc\n", encoding="utf-8")

    with pytest.raises(ImageBuildError):
        builder.export_rootfs()

    assert fake_runner.called("docker", "rm", "-f", "c0ffee")
    assert not builder.settings.cid_file.exists()
    assert not builder.settings.tarball.exists()


def test_export_requires_image_id(tmp_path: Path, fake_runner: FakeRunner, logger: StructuredLogger) -> None:
    with pytest.raises(ImageBuildError):
        _builder(tmp_path, fake_runner, logger).export_rootfs()

    assert fake_runner.calls == []


def test_clean_removes_only_build_outputs(tmp_path: Path, fake_runner: FakeRunner, logger: StructuredLogger) -> None:
    builder = _builder(tmp_path, fake_runner, logger)
    for path in (builder.settings.iid_file, builder.settings.tarball, tmp_path / "Dockerfile"):
        path.write_text("x", encoding="utf-8")

    removed = builder.clean()

    assert removed == [builder.settings.iid_file, builder.settings.tarball]
    assert (tmp_path / "Dockerfile").exists()
