import pytest

from estatico.errors import BuildIOError, TransformError
from estatico.pipeline import Pipeline, SourceFile, each, read_bytes
from tests.utils.files import write


def test_stages_run_in_order_and_keep_relative_paths(tmp_path):
    write(tmp_path, "source/pages/a.txt", "a")
    write(tmp_path, "source/pages/sub/b.txt", "b")
    seen = []

    def upper(f: SourceFile) -> SourceFile:
        seen.append("upper")
        return f.with_text(f.text.upper())

    def suffix(f: SourceFile) -> SourceFile:
        seen.append("suffix")
        return f.renamed(f.relative.with_suffix(".out"))

    written = (
        Pipeline("demo", ["source/pages/**/*.txt"], root=tmp_path)
        .pipe(each(upper))
        .pipe(each(suffix))
        .run("build")
    )

    assert sorted(p.relative_to(tmp_path).as_posix() for p in written) == [
        "build/a.out",
        "build/sub/b.out",
    ]
    assert (tmp_path / "build/sub/b.out").read_text() == "B"
    assert seen == ["upper", "upper", "suffix", "suffix"]


def test_each_drops_none(tmp_path):
    write(tmp_path, "src/keep.txt", "1")
    write(tmp_path, "src/drop.txt", "2")
    files = (
        Pipeline("demo", "src/*.txt", root=tmp_path)
        .pipe(each(lambda f: f if f.path.stem == "keep" else None))
        .process()
    )
    assert [f.path.name for f in files] == ["keep.txt"]


def test_unexpected_stage_error_is_wrapped(tmp_path):
    write(tmp_path, "src/a.txt", "x")

    def explode(files):
        raise ValueError("bad input")

    with pytest.raises(TransformError, match=r"\[demo:explode\] bad input"):
        Pipeline("demo", "src/*.txt", root=tmp_path).pipe(explode).process()


def test_read_missing_file(tmp_path):
    with pytest.raises(BuildIOError) as info:
        read_bytes(tmp_path / "missing.txt")
    assert info.value.path.endswith("missing.txt")
