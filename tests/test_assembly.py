import unittest

from fakes import ACTE_ID, sample_rows
from transcription_mcp.models import BlocKind, Status
from transcription_mcp.tree.assembly import build_tree, check_invariants


class TestBuildTree(unittest.TestCase):

    def test_siblings_are_sorted_by_position(self):
        rows = sample_rows()
        rows[0]["sections"].reverse()
        rows[0]["sections"][1]["blocs"].reverse()
        tree = build_tree(ACTE_ID, rows)

        doc = tree.document("D1")
        self.assertEqual([s.id for s in doc.sections], ["S1", "S2"])
        self.assertEqual([b.id for b in doc.sections[0].blocs], ["B1", "B2"])
        self.assertEqual(check_invariants(tree), [])

    def test_wire_columns_are_mapped(self):
        tree = build_tree(ACTE_ID, sample_rows())
        doc, section, bloc = tree.bloc("B3")
        self.assertEqual(doc.title, "Registre")
        self.assertEqual(section.title, "Folio 2")
        self.assertIs(section.status, Status.IN_PROGRESS)
        self.assertIs(bloc.kind, BlocKind.TEXT)
        self.assertEqual(bloc.content, "gamma")
        self.assertEqual(bloc.section_id, "S2")

    def test_null_columns_are_tolerated(self):
        rows = [
            {
                "id": "D9",
                "acte_id": ACTE_ID,
                "titre": None,
                "ordre": 1,
                "statut": None,
                "sections": [
                    {
                        "id": "S9",
                        "document_id": "D9",
                        "titre": None,
                        "ordre": 1,
                        "statut": None,
                        "blocs": [
                            {"id": "B9", "section_id": "S9", "type": "texte", "contenu": None, "ordre": 1, "statut": None}
                        ],
                    }
                ],
                "created_at": "2024-01-01T00:00:00Z",
            }
        ]
        tree = build_tree(ACTE_ID, rows)
        _, section, bloc = tree.bloc("B9")
        self.assertEqual(section.title, "")
        self.assertEqual(bloc.content, "")
        self.assertIsNone(bloc.status)

    def test_annotations_are_attached_by_bloc(self):
        annotations = [
            {"id": "M1", "bloc_id": "B1", "entite_id": "E1", "start": 0, "end": 5, "preview": "alpha"},
            {"id": "M2", "bloc_id": "B1", "entite_id": "E2", "start": 1, "end": 2, "preview": "l", "label": "x"},
            {"id": "M3", "bloc_id": "gone", "entite_id": "E3"},
        ]
        tree = build_tree(ACTE_ID, sample_rows(), annotations)
        b1 = tree.bloc("B1")[2]
        self.assertEqual([a.id for a in b1.annotations], ["M1", "M2"])
        self.assertEqual(tree.bloc("B2")[2].annotations, [])
        self.assertNotIn("mentions", b1.to_row())

    def test_empty_acte(self):
        tree = build_tree(ACTE_ID, [])
        self.assertEqual(tree.documents, [])
        self.assertEqual(check_invariants(tree), [])


class TestCheckInvariants(unittest.TestCase):

    def test_reports_gaps_and_wrong_parents(self):
        tree = build_tree(ACTE_ID, sample_rows())
        _, section, bloc = tree.bloc("B2")
        bloc.position = 5
        tree.bloc("B1")[2].section_id = "S2"

        problems = check_invariants(tree)
        self.assertEqual(len(problems), 2)
        self.assertTrue(any("positions" in p for p in problems))
        self.assertTrue(any("parent" in p for p in problems))


if __name__ == "__main__":
    unittest.main()
