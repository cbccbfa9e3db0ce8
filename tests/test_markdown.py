import unittest

from fakes import ACTE_ID, sample_rows
from transcription_mcp.models import BlocKind, TranscriptionTree
from transcription_mcp.tree.assembly import build_tree
from transcription_mcp.tree.markdown import parse_bloc_drafts, render_markdown


class TestRenderMarkdown(unittest.TestCase):

    def test_headings_follow_the_tree(self):
        markdown = render_markdown(build_tree(ACTE_ID, sample_rows()))
        lines = markdown.splitlines()
        self.assertEqual(lines[0], "# Registre")
        self.assertIn("## Folio 1", lines)
        self.assertIn("## Folio 2", lines)
        self.assertLess(markdown.index("alpha"), markdown.index("beta"))
        self.assertLess(markdown.index("## Folio 2"), markdown.index("gamma"))

    def test_bloc_kinds(self):
        rows = sample_rows()
        blocs = rows[0]["sections"][0]["blocs"]
        blocs[0].update({"type": "titre", "contenu": "Acte de naissance"})
        blocs[1].update({"type": "liste-à-puces", "contenu": "Jean\nMarie\n"})
        rows[0]["sections"][1]["blocs"][0].update({"type": "liste-numérotée", "contenu": "un\ndeux"})

        markdown = render_markdown(build_tree(ACTE_ID, rows))
        self.assertIn("### Acte de naissance", markdown)
        self.assertIn("- Jean\n- Marie", markdown)
        self.assertIn("un", markdown)
        self.assertIn("deux", markdown)
        self.assertRegex(markdown, r"\d\. deux")

    def test_empty_blocs_and_titles(self):
        rows = sample_rows()
        rows[0]["titre"] = ""
        rows[0]["sections"][0]["titre"] = ""
        rows[0]["sections"][0]["blocs"][0]["contenu"] = "  "
        markdown = render_markdown(build_tree(ACTE_ID, rows))
        self.assertTrue(markdown.startswith("# (untitled)"))
        self.assertNotIn("## Folio 1", markdown)
        self.assertNotIn("alpha", markdown)

    def test_empty_tree(self):
        self.assertEqual(render_markdown(TranscriptionTree(owner_id=ACTE_ID)).strip(), "")


class TestParseBlocDrafts(unittest.TestCase):

    def test_blocks_become_drafts_in_order(self):
        text = "# Titre\n\nPremier paragraphe\nsur deux lignes.\n\n- a\n- b\n\n1. un\n2. deux\n\nFin."
        drafts = parse_bloc_drafts(text)
        self.assertEqual(
            drafts,
            [
                (BlocKind.HEADING, "Titre"),
                (BlocKind.TEXT, "Premier paragraphe\nsur deux lignes."),
                (BlocKind.BULLET_LIST, "a\nb"),
                (BlocKind.NUMBERED_LIST, "un\ndeux"),
                (BlocKind.TEXT, "Fin."),
            ],
        )

    def test_nested_list_items_stay_in_one_bloc(self):
        drafts = parse_bloc_drafts("- a\n  - a.1\n- b\n")
        self.assertEqual(drafts, [(BlocKind.BULLET_LIST, "a\na.1\nb")])

    def test_blank_text_gives_no_drafts(self):
        self.assertEqual(parse_bloc_drafts(""), [])
        self.assertEqual(parse_bloc_drafts("\n\n   \n"), [])


if __name__ == "__main__":
    unittest.main()
