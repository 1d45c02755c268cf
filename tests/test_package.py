import warnings
from pathlib import Path

import filesender


def test_sources_compile_without_warnings():
    root = Path(filesender.__file__).parent
    with warnings.catch_warnings():
        warnings.simplefilter('error')
        for path in sorted(root.rglob('*.py')):
            compile(path.read_text(encoding='utf-8'), str(path), 'exec')
