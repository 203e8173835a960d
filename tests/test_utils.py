import unittest

from orchestrator.errors import ScaleDownFailed, ScaleUpFailed
from orchestrator.utils import retry


class TestRetry(unittest.TestCase):
    def test_retries_listed_errors_then_succeeds(self):
        attempts = []
        sleeps = []

        def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise ScaleUpFailed("boom", None, "ctx-a", "ctx-b")
            return "ok"

        self.assertEqual(retry(flaky, retries=3, delay=1, retry_on=(ScaleUpFailed,), sleep=sleeps.append), "ok")
        self.assertEqual(sleeps, [1, 1])

    def test_other_errors_not_retried(self):
        attempts = []

        def dual_active():
            attempts.append(1)
            raise ScaleDownFailed("boom", None, "ctx-a", "ctx-b")

        with self.assertRaises(ScaleDownFailed):
            retry(dual_active, retries=3, retry_on=(ScaleUpFailed,), sleep=lambda s: None)
        self.assertEqual(len(attempts), 1)

    def test_last_failure_reraised(self):
        def always():
            raise ScaleUpFailed("boom", None, "ctx-a", "ctx-b")

        with self.assertRaises(ScaleUpFailed):
            retry(always, retries=2, retry_on=(ScaleUpFailed,), sleep=lambda s: None)


if __name__ == '__main__':
    unittest.main()
