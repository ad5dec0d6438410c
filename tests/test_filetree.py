from unittest import TestCase

from fakeportal import PORTAL, element_href, folder_page, folder_url
from syncmyitslearning.exceptions import ParseError
from syncmyitslearning.filetree import (
	EntryKind,
	FolderEntry,
	disambiguated_file_name,
	duplicate_names,
	folder_name,
	parse_entries,
	sanitize,
	strip_invalid,
)
from syncmyitslearning.page import Page


class SanitizeTest(TestCase):
	def test_forbidden_chars(self):
		self.assertEqual(sanitize("A/B\\C:D"), "A_B_C_D")
		self.assertEqual(sanitize('a|b"c?d*e<f>g{h}i'), "a_b_c_d_e_f_g_h_i")

	def test_idempotent(self):
		for raw in [
			"A/B\\C:D",
			"Q&amp;A: Week 1",
			"&amp;lt;script&amp;gt;",
			"  Übung {1} ",
			"&amp/x",
			"plain",
		]:
			once = sanitize(raw)
			self.assertEqual(sanitize(once), once, raw)

	def test_entities(self):
		self.assertEqual(sanitize("Q&amp;A"), "Q&A")
		self.assertEqual(sanitize("Tom &amp;amp; Jerry"), "Tom & Jerry")
		self.assertEqual(sanitize("1 &lt; 2"), "1 _ 2")
		self.assertEqual(sanitize("caf&#233;"), "café")

	def test_bytes(self):
		self.assertEqual(sanitize("Übung/Lösung".encode("utf-8")), "Übung_Lösung")

	def test_strips_whitespace(self):
		self.assertEqual(sanitize("  Week 1 \n"), "Week 1")


class FolderNameTest(TestCase):
	def test_plain(self):
		self.assertEqual(folder_name("Notes", folder_url(482)), "Notes")

	def test_disambiguated(self):
		self.assertEqual(folder_name("Notes", folder_url(482), True), "Notes [482]")

	def test_disambiguated_sanitized(self):
		self.assertEqual(
			folder_name("A/B", PORTAL + "/Folder/x.aspx?FolderID=7&y=1", True),
			"A_B [7]",
		)

	def test_missing_folder_id(self):
		with self.assertRaises(ParseError):
			folder_name("Notes", PORTAL + "/Folder/x.aspx", True)

	def test_parsed_title_is_not_decoded_again(self):
		self.assertEqual(folder_name("R&amp;D", folder_url(5)), "R&amp;D")


class StripInvalidTest(TestCase):
	def test_forbidden_chars(self):
		self.assertEqual(strip_invalid(" a/b:c "), "a_b_c")

	def test_keeps_entities(self):
		self.assertEqual(strip_invalid("R&amp;D.pdf"), "R&amp;D.pdf")


class DisambiguatedFileNameTest(TestCase):
	def test_suffix(self):
		self.assertEqual(disambiguated_file_name("slides.pdf", "71"), "slides [71].pdf")
		self.assertEqual(disambiguated_file_name("slides.tar.gz", "7"), "slides.tar [7].gz")
		self.assertEqual(disambiguated_file_name("README", "7"), "README [7]")


class FolderEntryTest(TestCase):
	def test_kinds(self):
		self.assertIs(FolderEntry("a", "/Folder/processfolder.aspx?FolderID=1").kind, EntryKind.FOLDER)
		self.assertIs(FolderEntry("b", element_href(3)).kind, EntryKind.FILE)
		self.assertIs(FolderEntry("c", PORTAL + element_href(3)).kind, EntryKind.FILE)
		self.assertIs(FolderEntry("d", "/weblink/weblink.aspx?WebLinkID=5").kind, EntryKind.UNKNOWN)

	def test_element_id(self):
		self.assertEqual(FolderEntry("b", element_href(31)).element_id, "31")
		with self.assertRaises(ParseError):
			FolderEntry("b", "/LearningToolElement/Other.aspx").element_id

	def test_parse_entries(self):
		page = Page(
			folder_url(1),
			folder_page(
				"Root",
				[
					("Notes", "/Folder/processfolder.aspx?FolderID=482"),
					("Notes", "/Folder/processfolder.aspx?FolderID=483"),
					("Syllabus", element_href(11)),
				],
			),
		)
		entries = parse_entries(page)
		self.assertEqual([e.name for e in entries], ["Notes", "Notes", "Syllabus"])
		self.assertEqual(entries[2].url, element_href(11))
		self.assertEqual(duplicate_names(entries), {"Notes"})

	def test_entry_without_link_is_skipped(self):
		page = Page(
			folder_url(1),
			'<span id="ctl00_PageHeader_TT">Root</span><a class="GridTitle">Ghost</a>',
		)
		self.assertEqual(parse_entries(page), [])

	def test_no_duplicates(self):
		entries = [FolderEntry("a", "/Folder/1"), FolderEntry("b", "/Folder/2")]
		self.assertEqual(duplicate_names(entries), set())
