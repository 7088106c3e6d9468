import unittest

from src.guidedsetup.contracts import CONTRACT_VERSIONS, router_gaps, validate_contract_freeze


class TestContractsFreeze(unittest.TestCase):
    def test_contract_versions_are_frozen(self):
        self.assertEqual(
            CONTRACT_VERSIONS,
            {
                "state_schema": "v2",
                "trace_schema": "v2",
                "stage_catalog": "v1",
                "import_summary": "v2",
            },
        )

    def test_contract_validation_passes(self):
        result = validate_contract_freeze()
        self.assertTrue(result.is_valid)
        self.assertEqual(result.errors, [])

    def test_every_action_is_routed(self):
        self.assertEqual(router_gaps(), [])


if __name__ == "__main__":
    unittest.main()
