from matrixci.runner.run import PipelineRun
from matrixci.runner.runner import Runner
from matrixci.runner.scheduler import StageScheduler

__all__ = ['PipelineRun', 'Runner', 'StageScheduler']
