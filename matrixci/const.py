SKIP_LABEL = 'skip-ci'
PIPELINE_FILE = 'matrixci.yml'
MATRIX_FILE = 'test-matrix.yml'
GH_API_BASE = 'https://api.github.com'
STDERR_TAIL_LINES = 20
ENV_PREFIX = 'MATRIXCI_'
