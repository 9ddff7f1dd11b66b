import tempfile
import unittest

from fastapi.testclient import TestClient

from support import FakeModelClient, make_app


class RouteTestCase(unittest.TestCase):

	def setUp(self):
		self.tmp = tempfile.TemporaryDirectory()

	def tearDown(self):
		self.tmp.cleanup()

	def client_for(self, response):
		self.fake = FakeModelClient(response)
		return TestClient(make_app(self.tmp.name, self.fake))


class TestMapColumns(RouteTestCase):

	BODY = {
		"headers": ["Kepuasan Layanan", "Saran", "Nama"],
		"samples": {"Kepuasan Layanan": ["4 = Sangat Puas", "3 = Puas", "4", "2", "1"], "Saran": ["Lebih cepat"]},
		"units": [{"id": 5, "name": "Library"}],
	}

	def test_mappings_are_checked_against_inputs(self):
		client = self.client_for({"mappings": {
			"Kepuasan Layanan": {"unit_id": "5", "type": "SCORE", "rule": "LIKERT"},
			"Saran": {"unit_id": 77, "type": "TEXT"},
			"Nama": {"unit_id": None, "type": "IGNORE"},
			"Invented": {"unit_id": 5, "type": "TEXT"},
		}})
		r = client.post("/ai/map-columns", json=self.BODY)
		self.assertEqual(r.status_code, 200)
		mappings = r.json()["mappings"]
		self.assertEqual(mappings["Kepuasan Layanan"], {"unit_id": 5, "type": "SCORE", "rule": "LIKERT"})
		self.assertIsNone(mappings["Saran"]["unit_id"])
		self.assertNotIn("Invented", mappings)

	def test_prompt_samples_at_most_four_values(self):
		client = self.client_for({"mappings": {}})
		client.post("/ai/map-columns", json=self.BODY)
		prompt = self.fake.last_prompt
		self.assertIn("5: Library", prompt)
		self.assertIn('"4 = Sangat Puas"', prompt)
		self.assertNotIn('"1"', prompt)

	def test_unknown_type_is_rejected(self):
		client = self.client_for({"mappings": {"Saran": {"unit_id": 5, "type": "FREEFORM"}}})
		r = client.post("/ai/map-columns", json=self.BODY)
		self.assertEqual(r.status_code, 502)

	def test_unit_ids_must_be_numbers(self):
		client = self.client_for({"mappings": {}})
		r = client.post("/ai/map-columns", json={**self.BODY, "units": [{"id": "abc", "name": "Library"}]})
		self.assertEqual(r.status_code, 400)


class TestMapIdentity(RouteTestCase):

	def test_groups_keep_only_known_headers(self):
		client = self.client_for({"location": ["Lokasi"], "faculty": ["Fakultas", "Made Up"], "major": ["Prodi"], "year": []})
		r = client.post("/ai/map-identity", json={"headers": ["Lokasi", "Fakultas", "Prodi", "Saran"]})
		self.assertEqual(r.status_code, 200)
		self.assertEqual(r.json(), {"mapping": {"location": ["Lokasi"], "faculty": ["Fakultas"], "major": ["Prodi"], "year": []}})


class TestSuggestTaxonomy(RouteTestCase):

	def test_categories_mode(self):
		client = self.client_for({"suggestions": [{"name": "M-Flex", "description": "Flexible learning system", "keywords": ["mflex"]}]})
		r = client.post("/ai/suggest-taxonomy", json={
			"unitName": "Academic Affairs",
			"unitDesc": "Schedules and registration",
			"sampleComments": ["M-Flex is confusing"],
			"mode": "CATEGORIES",
			"additionalContext": "Prioritize M-Flex",
		})
		self.assertEqual(r.status_code, 200)
		self.assertEqual(r.json()["suggestions"][0]["name"], "M-Flex")
		prompt = self.fake.last_prompt
		self.assertIn("USER IMPORTANT NOTES: Prioritize M-Flex", prompt)
		self.assertIn("8-15 categories", prompt)

	def test_subcategories_mode_uses_parent(self):
		client = self.client_for({"suggestions": [{"name": "Queue time", "description": "Waiting in line"}]})
		r = client.post("/ai/suggest-taxonomy", json={
			"unitName": "Finance",
			"sampleComments": ["long queues"],
			"existingCategories": {"name": "Payment Service", "description": "Paying tuition"},
			"mode": "SUBCATEGORIES",
		})
		self.assertEqual(r.status_code, 200)
		self.assertEqual(r.json(), {"suggestions": [{"name": "Queue time", "description": "Waiting in line"}]})
		self.assertIn('"Payment Service": Paying tuition', self.fake.last_prompt)
		self.assertIn("5-10 subcategories", self.fake.last_prompt)

	def test_subcategories_mode_requires_parent(self):
		client = self.client_for({"suggestions": []})
		r = client.post("/ai/suggest-taxonomy", json={
			"unitName": "Finance",
			"sampleComments": [],
			"mode": "SUBCATEGORIES",
		})
		self.assertEqual(r.status_code, 400)
		self.assertEqual(self.fake.calls, [])

	def test_unknown_mode_is_rejected(self):
		client = self.client_for({"suggestions": []})
		r = client.post("/ai/suggest-taxonomy", json={"unitName": "Finance", "sampleComments": [], "mode": "TOPICS"})
		self.assertEqual(r.status_code, 400)


if __name__ == "__main__":
	unittest.main()
