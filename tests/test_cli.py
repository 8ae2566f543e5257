import json

import pytest
from click.testing import CliRunner

from histmatch import image_io
from histmatch.cli import main
from histmatch.image_buffer import ImageBuffer


@pytest.fixture
def images(tmp_path):
    source = tmp_path / "source.png"
    reference = tmp_path / "reference.ppm"
    image_io.save_image(ImageBuffer.from_pixels(2, 1, [(0, 0, 0), (255, 255, 255)]), source)
    image_io.save_image(ImageBuffer.from_pixels(2, 1, [(0, 0, 0), (0, 0, 0)]), reference)
    return source, reference


def test_match_writes_result(tmp_path, images):
    source, reference = images
    output = tmp_path / "result.png"
    result = CliRunner().invoke(main, ["match", str(source), str(reference), str(output)])
    assert result.exit_code == 0, result.output
    assert list(image_io.load_image(output).iter_pixels()) == [(0, 0, 0), (0, 0, 0)]


def test_match_collision_option(tmp_path, images):
    source, reference = images
    output = tmp_path / "result.ppm"
    result = CliRunner().invoke(
        main, ["match", str(source), str(reference), str(output), "--collision", "last", "--parallel"]
    )
    assert result.exit_code == 0, result.output
    assert list(image_io.load_image(output).iter_pixels()) == [(255, 255, 255)] * 2


def test_match_reads_config(tmp_path, images):
    source, reference = images
    config = tmp_path / "settings.json"
    config.write_text(json.dumps({"version": 1, "match": {"collision": "last"}}), encoding="utf-8")
    output = tmp_path / "result.png"
    result = CliRunner().invoke(
        main, ["match", str(source), str(reference), str(output), "--config", str(config)]
    )
    assert result.exit_code == 0, result.output
    assert image_io.load_image(output).get_pixel(0, 0) == (255, 255, 255)


def test_match_reports_bad_config(tmp_path, images):
    source, reference = images
    config = tmp_path / "settings.json"
    config.write_text("{", encoding="utf-8")
    result = CliRunner().invoke(
        main, ["match", str(source), str(reference), str(tmp_path / "out.png"), "--config", str(config)]
    )
    assert result.exit_code == 1
    assert "not valid JSON" in result.output


def test_match_reports_unsupported_output(tmp_path, images):
    source, reference = images
    result = CliRunner().invoke(main, ["match", str(source), str(reference), str(tmp_path / "out.xyz")])
    assert result.exit_code == 1
    assert "Unsupported file extension" in result.output


def test_equalize(tmp_path):
    source = tmp_path / "gray.png"
    values = [0, 0, 128, 255]
    image_io.save_image(ImageBuffer.from_pixels(4, 1, [(v, v, v) for v in values]), source)
    output = tmp_path / "equalized.png"
    result = CliRunner().invoke(main, ["equalize", str(source), str(output)])
    assert result.exit_code == 0, result.output
    pixels = list(image_io.load_image(output).iter_pixels())
    assert [p[0] for p in pixels] == [127, 127, 191, 254]


def test_histogram_prints_nonzero_levels(images):
    _, reference = images
    result = CliRunner().invoke(main, ["histogram", str(reference), "--channel", "green"])
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0] == "value\tcount\tcdf\tlevel"
    assert lines[1:] == ["0\t2\t1.000000\t255"]


def test_histogram_all_levels(images):
    source, _ = images
    result = CliRunner().invoke(main, ["histogram", str(source), "--all-levels"])
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert len(lines) == 257
    assert lines[1] == "0\t1\t0.500000\t128"
    assert lines[-1] == "255\t1\t1.000000\t255"


def test_match_reports_read_only_output_format(tmp_path, images):
    source, reference = images
    result = CliRunner().invoke(main, ["match", str(source), str(reference), str(tmp_path / "out.psd")])
    assert result.exit_code == 1
    assert "Cannot write PSD" in result.output


def test_match_reports_non_ascii_ppm(tmp_path, images):
    source, _ = images
    broken = tmp_path / "broken.ppm"
    broken.write_bytes(b"P3\n1 1\n255\n1 2 \xe93\n")
    result = CliRunner().invoke(main, ["match", str(source), str(broken), str(tmp_path / "out.png")])
    assert result.exit_code == 1
    assert "Non-ASCII" in result.output
