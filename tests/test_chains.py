"""Test chains created from the prompt library"""

# pyright: basic
# pyright: reportArgumentType=false

import os
import unittest

from lmchain.config.config import Settings, LanguageModelSettings
from lmchain.core.parallel import ParallelGroup
from lmchain.core.pipeline import Pipeline
from lmchain.language_models.chains import (
    create_chain,
    create_chain_from_objects,
    create_naming_chain,
    resolve_settings,
)
from lmchain.language_models.prompts import create_prompt
from lmchain.language_models.template import Template

OPENAI_KEY_AVAILABLE = os.environ.get("OPENAI_API_KEY") is not None

debug_model = {'model': "Debug/chains"}
debug_settings = Settings(
    major={'model': "Debug/major"},
    minor={'model': "Debug/minor"},
    aux={'model': "Debug/aux"},
)


def _get_name(kn: str, sn: str, mn: str) -> str:
    return f"{kn}:{sn}/{mn}"


class TestCreateChain(unittest.TestCase):

    def test_company_names(self):
        chain = create_chain("company_names", debug_model)
        self.assertIsInstance(chain, Pipeline)
        self.assertIsInstance(chain.first, Template)
        self.assertIs(chain.output_type, str)
        result = chain.invoke({'product': "fancy cookies"})
        self.assertIsInstance(result, str)
        self.assertTrue(bool(result))

    def test_stream_equals_invoke(self):
        chain = create_chain("summarizer", debug_model)
        value = {'text': "Socks keep feet warm."}
        self.assertEqual("".join(chain.stream(value)), chain.invoke(value))

    def test_chain_names(self):
        chain = create_chain("company_names", debug_settings)
        self.assertEqual(
            chain.get_name(), _get_name("company_names", "Debug", "minor")
        )
        chain = create_chain("name_selection", debug_settings)
        self.assertEqual(
            chain.get_name(), _get_name("name_selection", "Debug", "major")
        )

    def test_memoized(self):
        chain = create_chain("summarizer", debug_model)
        self.assertIs(chain, create_chain("summarizer", debug_model))
        other = create_chain(
            "summarizer", debug_model, system_prompt="Be brief."
        )
        self.assertIsNot(chain, other)

    def test_settings_object(self):
        model = LanguageModelSettings(model="Debug/object")
        chain = create_chain("summarizer", model)
        self.assertEqual(
            chain.get_name(), _get_name("summarizer", "Debug", "object")
        )

    def test_invalid_kernel(self):
        with self.assertRaises(ValueError):
            create_chain("nonexistent", debug_model)

    def test_invalid_settings(self):
        with self.assertRaises(ValueError):
            create_chain("summarizer", {'model': "Debug"})
        with self.assertRaises(ValueError):
            create_chain("summarizer", {'model': "Cohere/latest"})
        with self.assertRaises(ValueError):
            create_chain("summarizer", "Debug/model")

    def test_missing_variable(self):
        chain = create_chain("company_names", debug_model)
        with self.assertRaises(KeyError):
            chain.invoke({'item': "socks"})

    def test_custom_prompt(self):
        create_prompt(
            "Write a slogan for a company that makes {product}.",
            "slogan_test",
            system_prompt="You are a marketing expert.",
        )
        chain = create_chain("slogan_test", {'model': "Debug/slogan"})
        self.assertIsInstance(chain.invoke({'product': "socks"}), str)


class TestResolveSettings(unittest.TestCase):

    def test_dict(self):
        settings = resolve_settings(debug_model)
        self.assertEqual(settings.major.model, "Debug/chains")
        self.assertEqual(settings.aux.model, "Debug/chains")

    def test_settings(self):
        self.assertIs(resolve_settings(debug_settings), debug_settings)

    def test_empty(self):
        self.assertIsInstance(resolve_settings(None), Settings)
        self.assertIsInstance(resolve_settings({}), Settings)


class TestChainFromObjects(unittest.TestCase):

    def test_from_settings(self):
        chain = create_chain_from_objects(
            "Write a slogan for {product}.",
            system_prompt="You are a marketing expert.",
            language_model=LanguageModelSettings(
                model="Debug/custom",
                provider_params={'message': "Socks for all."},
            ),
        )
        self.assertEqual(chain.get_name(), "Custom:Debug/custom")
        self.assertEqual(chain.invoke({'product': "socks"}), "Socks for all.")

    def test_from_model(self):
        from lmchain.language_models.models import create_model_from_spec

        model = create_model_from_spec(
            "Debug/custom2", provider_params={'message': "Fancy Crumbs"}
        )
        chain = create_chain_from_objects(
            "Names for {product}?", language_model=model, timeout=5
        )
        self.assertEqual(chain.get_name(), "Custom")
        self.assertEqual(chain.invoke({'product': "cookies"}), "Fancy Crumbs")


class TestNamingChain(unittest.IsolatedAsyncioTestCase):

    async def test_structure(self):
        chain = create_naming_chain(debug_settings)
        group = chain.first
        self.assertIsInstance(group, ParallelGroup)
        self.assertListEqual(group.keys, ['names', 'final_criteria'])

    async def test_intermediate_result(self):
        chain = create_naming_chain(debug_settings)
        value = await chain.first.ainvoke(
            {'product': "wooden cars", 'final_criteria': "sustainability"}
        )
        self.assertSetEqual(set(value.keys()), {'names', 'final_criteria'})
        self.assertIsInstance(value['names'], str)
        self.assertEqual(value['final_criteria'], "sustainability")

    async def test_invoke(self):
        chain = create_naming_chain(debug_settings)
        value = {'product': "wooden cars", 'final_criteria': "sustainability"}
        result = await chain.ainvoke(value)
        self.assertIsInstance(result, str)
        self.assertTrue(bool(result))
        chunks = [c async for c in chain.astream(value)]
        self.assertEqual("".join(chunks), result)


@unittest.skipUnless(OPENAI_KEY_AVAILABLE, "OpenAI API key not available")
class TestOpenAIChains(unittest.TestCase):

    def test_company_names(self):
        chain = create_chain("company_names", {'model': "OpenAI/gpt-4.1-nano"})
        result = chain.invoke({'product': "colorful socks"})
        self.assertIsInstance(result, str)


if __name__ == "__main__":
    unittest.main()
