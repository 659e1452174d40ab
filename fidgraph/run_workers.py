#!/usr/bin/env python3
"""
Backfill Process Manager
========================

Runs the backfill scheduler and N backfill workers as child processes of one
container, prefixes their output, and restarts any that exit.

Usage:
    python -m fidgraph.run_workers                   # scheduler + 1 backfill worker
    python -m fidgraph.run_workers --workers 3       # scheduler + 3 backfill workers
    python -m fidgraph.run_workers --only worker     # backfill workers only
    python -m fidgraph.run_workers --only scheduler  # scheduler only

Each backfill worker gets a stable WORKER_NAME (followers-backfill-<n>), so a
restarted worker reclaims the jobs it held when it died.
"""
import argparse
import asyncio
import logging
import os
import signal
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / '.env')

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(name)s] %(levelname)s: %(message)s'
)
log = logging.getLogger('fidgraph-manager')

RESTART_DELAY = 5.0  # seconds, doubled per consecutive crash
MAX_RESTART_DELAY = 120.0
STOP_TIMEOUT = 10.0


@dataclass
class ProcessSpec:
    name: str
    module: str
    env: Dict[str, str] = field(default_factory=dict)
    restart: bool = True

    @property
    def command(self) -> List[str]:
        return [sys.executable, '-m', self.module]


def build_specs(only: Optional[str], workers: int) -> List[ProcessSpec]:
    specs = []
    if only in (None, 'all', 'scheduler'):
        specs.append(ProcessSpec(name='scheduler', module='fidgraph.run_backfill_scheduler'))
    if only in (None, 'all', 'worker'):
        for n in range(1, workers + 1):
            specs.append(ProcessSpec(
                name=f'backfill-{n}',
                module='fidgraph.run_backfill_worker',
                env={'WORKER_NAME': f'followers-backfill-{n}'},
            ))
    return specs


class ProcessManager:
    """Supervises child processes until SIGTERM / SIGINT"""

    def __init__(self, specs: List[ProcessSpec]):
        self.specs = specs
        self.children: Dict[str, asyncio.subprocess.Process] = {}
        self.stopping = asyncio.Event()

    async def spawn(self, spec: ProcessSpec) -> Optional[asyncio.subprocess.Process]:
        env = {**os.environ, **spec.env}
        try:
            proc = await asyncio.create_subprocess_exec(
                *spec.command,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            log.error(f"Could not start {spec.name}: {e}")
            return None
        log.info(f"Started {spec.name} (PID {proc.pid})")
        self.children[spec.name] = proc
        return proc

    @staticmethod
    async def relay(name: str, proc: asyncio.subprocess.Process):
        """Copy a child's output to ours, one prefixed line at a time"""
        async for line in proc.stdout:
            sys.stdout.write(f"[{name}] {line.decode(errors='replace')}")
            sys.stdout.flush()

    async def supervise(self, spec: ProcessSpec):
        delay = RESTART_DELAY
        while not self.stopping.is_set():
            proc = await self.spawn(spec)
            if proc is None:
                return

            await asyncio.gather(self.relay(spec.name, proc), proc.wait())
            if self.stopping.is_set():
                return

            log.warning(f"{spec.name} exited with code {proc.returncode}")
            if not spec.restart:
                return

            log.info(f"Restarting {spec.name} in {delay:.0f}s")
            try:
                await asyncio.wait_for(self.stopping.wait(), timeout=delay)
                return
            except asyncio.TimeoutError:
                pass
            delay = min(delay * 2, MAX_RESTART_DELAY)

    async def terminate_all(self):
        for name, proc in self.children.items():
            if proc.returncode is None:
                log.info(f"Stopping {name} (PID {proc.pid})")
                proc.terminate()

        for name, proc in self.children.items():
            try:
                await asyncio.wait_for(proc.wait(), timeout=STOP_TIMEOUT)
            except asyncio.TimeoutError:
                log.warning(f"Killing {name}, it ignored SIGTERM")
                proc.kill()
                await proc.wait()
        log.info("All processes stopped")

    async def run(self):
        if not self.specs:
            log.error("Nothing to run")
            return

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.stopping.set)

        log.info(f"Starting {len(self.specs)} process(es): {', '.join(s.name for s in self.specs)}")
        supervisors = [asyncio.create_task(self.supervise(spec)) for spec in self.specs]

        await self.stopping.wait()
        log.info("Shutting down...")
        await self.terminate_all()
        await asyncio.gather(*supervisors, return_exceptions=True)


def main():
    parser = argparse.ArgumentParser(description='Run the followers backfill processes')
    parser.add_argument('--only', choices=['worker', 'scheduler', 'all'],
                        help='Run only one process type')
    parser.add_argument('--workers', type=int, default=1,
                        help='Number of backfill worker processes (default: 1)')
    args = parser.parse_args()

    asyncio.run(ProcessManager(build_specs(args.only, args.workers)).run())


if __name__ == '__main__':
    main()
