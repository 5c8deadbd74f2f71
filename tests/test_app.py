from markerkit import app
from markerkit.core.gatekeeper import TEMP_PREFIX
from markerkit.core.models import SourceMedia


def _config(tmp_path, out):
    path = tmp_path / "config.yaml"
    path.write_text(f"generated:\n  folder: {out}\n", encoding="utf-8")
    return str(path)


def test_cleanup_command(tmp_path):
    out = tmp_path / "markers"
    (out / "abc").mkdir(parents=True)
    stray = out / "abc" / f"{TEMP_PREFIX}1-x.mp4"
    stray.write_bytes(b"x")
    assert app.main(["--config", _config(tmp_path, out), "cleanup"]) == 0
    assert not stray.exists()


def test_overrides_map_to_config_keys(tmp_path):
    args = app.argparse.Namespace(out=str(tmp_path), overwrite=True, hwaccel="on", ffmpeg="/opt/ffmpeg")
    assert app._apply_overrides(args) == {
        "generated.folder": str(tmp_path),
        "generated.overwrite": True,
        "ffmpeg.hardware_acceleration": True,
        "ffmpeg.bin": "/opt/ffmpeg",
    }


def test_phash_command(tmp_path, monkeypatch, capsys):
    media = SourceMedia(path=str(tmp_path / "v.mp4"), duration=50.0, hash="abc")
    monkeypatch.setattr(app, "probe_media", lambda path, probe_bin: media)
    monkeypatch.setattr(app.phash, "generate", lambda *a, **kw: 0xDEADBEEF)
    rc = app.main(["--config", _config(tmp_path, tmp_path / "m"), "phash", "--in", media.path])
    assert rc == 0
    assert capsys.readouterr().out.strip() == "00000000deadbeef"
