from unittest import IsolatedAsyncioTestCase, TestCase

from fakeportal import PORTAL, FakePortal
from syncmyitslearning.exceptions import ParseError, TransportError
from syncmyitslearning.page import Page, fetch

HTML = """
<html><body>
<span id="title">Week &amp; 1</span>
<a id="download" href="/file?a=1&amp;b=2" Download="report.pdf">x</a>
<a id="empty">y</a>
<a class="GridTitle" href="/1">One</a><a class="GridTitle other" href="/2">Two</a>
</body></html>
"""


class PageTest(TestCase):
	def setUp(self) -> None:
		super().setUp()
		self.page = Page(PORTAL + "/page", HTML)

	def test_find_id(self):
		self.assertIsNotNone(self.page.find_id("download"))
		self.assertIsNone(self.page.find_id("missing"))

	def test_require_id(self):
		with self.assertRaises(ParseError):
			self.page.require_id("missing")

	def test_text_of(self):
		self.assertEqual(self.page.text_of("title"), "Week & 1")

	def test_attribute(self):
		anchor = self.page.require_id("download")
		self.assertEqual(self.page.attribute(anchor, "href"), "/file?a=1&b=2")
		self.assertEqual(self.page.attribute(anchor, "Download"), "report.pdf")
		with self.assertRaises(ParseError):
			self.page.attribute(self.page.require_id("empty"), "href")

	def test_find_class(self):
		self.assertEqual(
			[t.get_text() for t in self.page.find_class("GridTitle")], ["One", "Two"]
		)


class FetchTest(IsolatedAsyncioTestCase):
	async def asyncSetUp(self) -> None:
		self.portal = FakePortal()
		self.client = self.portal.client()

	async def asyncTearDown(self) -> None:
		await self.client.aclose()

	async def test_sends_cookie_header(self):
		self.portal.add(PORTAL + "/a", text="<p>ok</p>")
		fetched = await fetch(self.client, PORTAL + "/a", "A=1; B=2")
		fetched.raise_for_status()
		[request] = self.portal.requests
		self.assertEqual(request.headers["cookie"], "A=1; B=2")

	async def test_no_cookie_header(self):
		self.portal.add(PORTAL + "/a", text="<p>ok</p>")
		await fetch(self.client, PORTAL + "/a")
		[request] = self.portal.requests
		self.assertNotIn("cookie", request.headers)

	async def test_redirect_not_followed(self):
		self.portal.add(
			PORTAL + "/a",
			status=302,
			headers=[("location", "/b"), ("set-cookie", "A=1; path=/")],
		)
		fetched = await fetch(self.client, PORTAL + "/a")
		self.assertEqual(fetched.status_code, 302)
		self.assertEqual(fetched.location, PORTAL + "/b")
		self.assertEqual(fetched.set_cookies, ["A=1; path=/"])
		self.assertEqual(len(self.portal.requests), 1)

	async def test_redirect_followed_with_cookies(self):
		self.portal.add(
			PORTAL + "/a",
			status=302,
			headers=[("location", "/b"), ("set-cookie", "A=1; path=/")],
		)
		self.portal.add(
			PORTAL + "/b", text="<p>b</p>", headers=[("set-cookie", "B=2; path=/")]
		)
		fetched = await fetch(self.client, PORTAL + "/a", "S=1", follow_redirects=True)
		fetched.raise_for_status()
		self.assertEqual(fetched.url, PORTAL + "/b")
		self.assertEqual(fetched.set_cookies, ["A=1; path=/", "B=2; path=/"])
		self.assertEqual(
			[r.headers["cookie"] for r in self.portal.requests], ["S=1", "S=1"]
		)

	async def test_non_success_status(self):
		self.portal.add(PORTAL + "/a", status=500, text="oops")
		fetched = await fetch(self.client, PORTAL + "/a")
		with self.assertRaises(TransportError) as cm:
			fetched.raise_for_status()
		self.assertEqual(cm.exception.status, 500)
		self.assertIn(PORTAL + "/a", str(cm.exception))

	async def test_redirect_loop(self):
		self.portal.add(PORTAL + "/a", status=302, headers=[("location", "/a")])
		with self.assertRaises(TransportError):
			await fetch(self.client, PORTAL + "/a", follow_redirects=True)
