import unittest

from media_proxy.errors import HostNotAllowedError, InvalidUrlError, MissingInputError
from media_proxy.resolver import ProxyResolver, build_allowed_hosts, strip_api_suffix


class ProxyResolverTests(unittest.TestCase):
    def setUp(self):
        self.resolver = ProxyResolver.create("http://localhost:3003/api/v1")

    def test_relative_paths_get_exactly_one_leading_slash(self):
        expected = "http://localhost:3003/uploads/icons/cat1.svg"
        for target in (
            "uploads/icons/cat1.svg",
            "/uploads/icons/cat1.svg",
            "//uploads/icons/cat1.svg",
            "///uploads/icons/cat1.svg",
        ):
            with self.subTest(target=target):
                self.assertEqual(self.resolver.resolve(target), expected)

    def test_absolute_url_on_dev_host(self):
        url = "http://localhost:3002/uploads/a.png"
        self.assertEqual(self.resolver.resolve(url), url)

    def test_absolute_url_on_disallowed_host(self):
        with self.assertRaises(HostNotAllowedError) as ctx:
            self.resolver.resolve("https://evil.example.com/uploads/a.png")
        self.assertEqual(ctx.exception.host, "evil.example.com")
        self.assertEqual(ctx.exception.status_code, 403)

    def test_port_is_part_of_host_match(self):
        with self.assertRaises(HostNotAllowedError):
            self.resolver.resolve("http://localhost:9999/uploads/a.png")

    def test_default_port_is_elided(self):
        resolver = ProxyResolver.create("https://api.example.com/api/v1")
        self.assertEqual(
            resolver.resolve("https://api.example.com:443/uploads/a.png"),
            "https://api.example.com:443/uploads/a.png",
        )

    def test_malformed_urls(self):
        for target in ("http://", "http://localhost:port/a.png", "https:///a.png"):
            with self.subTest(target=target):
                with self.assertRaises(InvalidUrlError):
                    self.resolver.resolve(target)

    def test_malformed_base_makes_relative_paths_invalid(self):
        resolver = ProxyResolver.create("not a url")
        with self.assertRaises(InvalidUrlError):
            resolver.resolve("/uploads/a.png")

    def test_missing_target(self):
        with self.assertRaises(MissingInputError):
            self.resolver.resolve("")
        with self.assertRaises(MissingInputError):
            self.resolver.resolve(None)

    def test_upload_path(self):
        resolver = ProxyResolver.create("http://localhost:3001")
        self.assertEqual(
            resolver.resolve_upload_path(["avatars", "a1.jpg"]),
            "http://localhost:3001/uploads/avatars/a1.jpg",
        )

    def test_upload_path_quotes_segments(self):
        self.assertEqual(
            self.resolver.resolve_upload_path(["services", "my photo.jpg"]),
            "http://localhost:3003/uploads/services/my%20photo.jpg",
        )

    def test_upload_path_rejects_traversal_and_empty(self):
        with self.assertRaises(InvalidUrlError):
            self.resolver.resolve_upload_path(["..", "etc", "passwd"])
        with self.assertRaises(MissingInputError):
            self.resolver.resolve_upload_path([""])


class AllowedHostTests(unittest.TestCase):
    def test_configured_host_joins_dev_hosts(self):
        hosts = build_allowed_hosts("https://api.agro.example/api/v1")
        self.assertEqual(
            hosts,
            frozenset(
                {
                    "localhost:3001",
                    "localhost:3002",
                    "localhost:3003",
                    "api.agro.example",
                }
            ),
        )

    def test_extra_hosts(self):
        hosts = build_allowed_hosts(
            "http://localhost:3003", dev_hosts=(), extra_hosts=["CDN.example.com", " "]
        )
        self.assertEqual(hosts, frozenset({"localhost:3003", "cdn.example.com"}))

    def test_unparseable_base_falls_back_to_stripped_scheme(self):
        hosts = build_allowed_hosts("http://backend:notaport/api", dev_hosts=())
        self.assertEqual(hosts, frozenset({"backend:notaport"}))

    def test_strip_api_suffix(self):
        self.assertEqual(
            strip_api_suffix("http://localhost:3003/api/v1"), "http://localhost:3003"
        )
        self.assertEqual(
            strip_api_suffix("http://localhost:3003/api/v1/"), "http://localhost:3003"
        )
        self.assertEqual(
            strip_api_suffix("http://localhost:3003"), "http://localhost:3003"
        )


if __name__ == "__main__":
    unittest.main()
