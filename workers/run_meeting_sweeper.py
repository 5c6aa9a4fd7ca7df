from common.workers.launcher import WorkerLauncher
from packages.meetings.workers.meeting_sweeper import MeetingSweeper

if __name__ == "__main__":
    WorkerLauncher().run_with_cli(
        worker_factory=MeetingSweeper, worker_name="Meeting Sweeper"
    )
