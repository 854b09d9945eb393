import asyncio
import unittest

from .util import either_or_interrupt, run_command


class EitherOrInterruptTest(unittest.IsolatedAsyncioTestCase):
    async def test_completes(self):
        exit_event = asyncio.Event()
        self.assertIsNone(await either_or_interrupt(asyncio.sleep(0), [exit_event.wait()]))

    async def test_interrupted(self):
        exit_event = asyncio.Event()
        exit_event.set()
        pending = await either_or_interrupt(asyncio.sleep(10), [exit_event.wait()])
        self.assertIsNotNone(pending)
        pending.cancel()


class RunCommandTest(unittest.IsolatedAsyncioTestCase):
    async def test_output_and_exit_code(self):
        exit_code, output = await run_command(['sh', '-c', 'echo out; echo err >&2; exit 3'])
        self.assertEqual(exit_code, 3)
        self.assertIn('out', output)
        self.assertIn('err', output)


if __name__ == '__main__':
    unittest.main()
