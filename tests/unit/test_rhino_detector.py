from pathlib import Path

import pytest

from splurge_rhino_to_nsubstitute.detectors import RhinoMocksFileDetector


@pytest.mark.parametrize(
    "code",
    [
        "from rhino_mocks import MockRepository\nm = MockRepository.GenerateMock[IFoo]()\n",
        "import rhino_mocks\nm = rhino_mocks.MockRepository.GenerateStub[IFoo]()\n",
        "from rhino_mocks import Arg as A\nf(A[int].Is.Anything)\n",
        "from rhino_mocks.extensions import *\nrepo.VerifyAllExpectations()\n",
        "import rhino_mocks\n\ndef test_x(repo):\n    repo.AssertWasCalled(lambda r: r.Save())\n",
    ],
)
def test_detects_rhino_mocks_usage(code: str):
    assert RhinoMocksFileDetector().is_rhino_mocks_source(code)


@pytest.mark.parametrize(
    "code",
    [
        "import os\nrepo.Expect(lambda r: r.Save())\n",
        "from rhino_mocks import MockRepository\n",
        "from rhino_mocks import MockRepository\n# MockRepository.GenerateMock\n",
        "from .rhino_mocks import MockRepository\nMockRepository.GenerateMock[IFoo]()\n",
        "import rhino_mocks_compat\nrhino_mocks_compat.run()\n",
    ],
)
def test_ignores_files_without_usage(code: str):
    assert not RhinoMocksFileDetector().is_rhino_mocks_source(code)


def test_custom_source_module():
    code = "from legacy.mocks import MockRepository\nMockRepository.GenerateMock[IFoo]()\n"
    assert RhinoMocksFileDetector("legacy.mocks").is_rhino_mocks_source(code)
    assert not RhinoMocksFileDetector().is_rhino_mocks_source(code)


def test_detector_is_reusable(tmp_path: Path):
    detector = RhinoMocksFileDetector()
    rhino = tmp_path / "test_rhino.py"
    rhino.write_text("from rhino_mocks import Arg\nf(Arg[int].Is.Null)\n")
    plain = tmp_path / "test_plain.py"
    plain.write_text("import os\n")

    assert detector.is_rhino_mocks_file(rhino)
    assert not detector.is_rhino_mocks_file(plain)
    assert detector.is_rhino_mocks_file(str(rhino))


def test_syntax_errors_propagate(tmp_path: Path):
    broken = tmp_path / "test_broken.py"
    broken.write_text("def (:\n")
    with pytest.raises(SyntaxError):
        RhinoMocksFileDetector().is_rhino_mocks_file(broken)
