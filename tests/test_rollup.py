import unittest

from transcription_mcp.models import Status
from transcription_mcp.tree.rollup import needs_update, rollup_status

DRAFT, IN_PROGRESS, DONE = Status.DRAFT, Status.IN_PROGRESS, Status.DONE


class TestRollupStatus(unittest.TestCase):

    def test_any_advanced_child_means_in_progress(self):
        self.assertEqual(rollup_status(DRAFT, [DRAFT, IN_PROGRESS]), IN_PROGRESS)
        self.assertEqual(rollup_status(DRAFT, [DONE, DRAFT]), IN_PROGRESS)

    def test_all_drafts_or_unset_means_draft(self):
        self.assertEqual(rollup_status(IN_PROGRESS, [DRAFT, None]), DRAFT)
        self.assertEqual(rollup_status(None, [None]), DRAFT)

    def test_no_children_means_draft(self):
        self.assertEqual(rollup_status(IN_PROGRESS, []), DRAFT)

    def test_done_is_never_produced(self):
        """All children done does not promote a container that is not done."""
        self.assertEqual(rollup_status(IN_PROGRESS, [DONE, DONE]), IN_PROGRESS)

    def test_done_is_sticky_while_every_child_is_done(self):
        self.assertEqual(rollup_status(DONE, [DONE, DONE]), DONE)
        self.assertEqual(rollup_status(DONE, []), DONE)

    def test_done_is_lost_when_a_child_regresses(self):
        self.assertEqual(rollup_status(DONE, [DONE, DRAFT]), IN_PROGRESS)
        self.assertEqual(rollup_status(DONE, [DRAFT]), DRAFT)

    def test_rollup_is_idempotent(self):
        children = [DRAFT, IN_PROGRESS, None]
        for current in (None, DRAFT, IN_PROGRESS, DONE):
            once = rollup_status(current, children)
            self.assertEqual(rollup_status(once, children), once)

    def test_needs_update_only_reports_changes(self):
        self.assertIsNone(needs_update(IN_PROGRESS, [IN_PROGRESS]))
        self.assertEqual(needs_update(DRAFT, [IN_PROGRESS]), IN_PROGRESS)
        self.assertEqual(needs_update(None, []), DRAFT)


if __name__ == "__main__":
    unittest.main()
