# -*- coding: utf-8 -*-

from __future__ import annotations

import unittest

from ecg_assistant.ai.gateway import extract_completion_text
from ecg_assistant.ai.interpreter import build_messages, extract_pdf_text, is_pdf, normalize_analysis
from ecg_assistant.ai.parsing import iter_json_object_candidates, parse_model_json
from ecg_assistant.ai.report import FALLBACK_REPORT_TEXT, build_report_prompt, derive_risk_level
from ecg_assistant.errors import MalformedResponseError
from ecg_assistant.pipeline.models import ECGAnalysis, Urgency, normalize_urgency


class TestParseModelJson(unittest.TestCase):
    def test_prose_wrapped_fence_uses_fenced_object(self) -> None:
        content = (
            'Пример формата: {"diagnosis": "шаблон"}\n'
            "Результат:\n```json\n"
            '{"heart_rate": "72 уд/мин", "diagnosis": "Синусовый ритм", "urgency": "норма"}\n'
            "```\nСпасибо!"
        )
        parsed = parse_model_json(content)
        self.assertEqual(parsed["diagnosis"], "Синусовый ритм")
        self.assertEqual(parsed["heart_rate"], "72 уд/мин")

    def test_plain_object_in_prose(self) -> None:
        parsed = parse_model_json('Вот ответ: {"rhythm": "синусовый",} конец')
        self.assertEqual(parsed, {"rhythm": "синусовый"})

    def test_braces_inside_strings_do_not_split(self) -> None:
        candidates = iter_json_object_candidates('{"a": "x}y", "b": {"c": 1}} tail {"d": 2}')
        self.assertEqual(candidates, ['{"a": "x}y", "b": {"c": 1}}', '{"d": 2}'])

    def test_no_json_fails_hard(self) -> None:
        with self.assertRaises(MalformedResponseError) as ctx:
            parse_model_json("Не могу проанализировать изображение.")
        self.assertIn("структурированный", ctx.exception.message)

    def test_undecodable_object_fails_hard(self) -> None:
        with self.assertRaises(MalformedResponseError) as ctx:
            parse_model_json("{heart_rate: 72}")
        self.assertIn("некорректный формат", ctx.exception.message)


class TestNormalizeAnalysis(unittest.TestCase):
    def test_missing_urgency_needs_attention(self) -> None:
        analysis = normalize_analysis({"heart_rate": "80", "diagnosis": "Норма"})
        self.assertEqual(analysis.urgency, Urgency.attention)

    def test_defaults_fill_missing_fields(self) -> None:
        analysis = normalize_analysis({})
        self.assertEqual(analysis.heart_rate, "Не определено")
        self.assertEqual(analysis.rhythm, "Не определено")
        self.assertEqual(analysis.main_findings, ["Анализ выполнен"])
        self.assertEqual(analysis.diagnosis, "Требуется дополнительная оценка специалиста")

    def test_numeric_and_scalar_values(self) -> None:
        analysis = normalize_analysis({"heart_rate": 72, "main_findings": "Без особенностей"})
        self.assertEqual(analysis.heart_rate, "72")
        self.assertEqual(analysis.main_findings, ["Без особенностей"])

    def test_urgency_aliases(self) -> None:
        self.assertEqual(normalize_urgency("  Срочная   помощь "), Urgency.urgent)
        self.assertEqual(normalize_urgency("high"), Urgency.urgent)
        self.assertEqual(normalize_urgency("normal"), Urgency.normal)
        self.assertEqual(normalize_urgency("критично"), Urgency.attention)
        self.assertEqual(normalize_urgency(None), Urgency.attention)

    def test_model_accepts_loose_urgency(self) -> None:
        self.assertEqual(ECGAnalysis.model_validate({"urgency": "urgent"}).urgency, Urgency.urgent)


class TestRiskLevel(unittest.TestCase):
    def test_norma_keyword_wins(self) -> None:
        text = "Показатели в пределах нормы, норма. Срочно ничего не требуется."
        self.assertEqual(derive_risk_level("срочная помощь", text), Urgency.normal)

    def test_urgent_keywords(self) -> None:
        self.assertEqual(derive_risk_level("норма", "Нужно срочно обратиться к врачу"), Urgency.urgent)
        self.assertEqual(derive_risk_level(None, "Требуется срочная помощь"), Urgency.urgent)

    def test_no_keywords_keeps_interpreter_urgency(self) -> None:
        self.assertEqual(derive_risk_level("требует внимания", "Наблюдение у кардиолога."), Urgency.attention)
        self.assertEqual(derive_risk_level("bogus", "Наблюдение у кардиолога."), Urgency.attention)


class TestPrompts(unittest.TestCase):
    def test_pdf_is_sent_as_text(self) -> None:
        messages = build_messages("http://x/files/a.pdf", "application/pdf", pdf_text="QT 400 мс")
        content = messages[0]["content"]
        self.assertEqual(len(content), 1)
        self.assertEqual(content[0]["type"], "text")
        self.assertIn("QT 400 мс", content[0]["text"])

    def test_image_is_sent_as_vision_content(self) -> None:
        messages = build_messages("http://x/files/a.png", "image/png")
        kinds = [part["type"] for part in messages[0]["content"]]
        self.assertEqual(kinds, ["text", "image_url"])

    def test_declared_type_beats_url_suffix(self) -> None:
        self.assertFalse(is_pdf("http://x/files/a.pdf", "image/png"))
        self.assertTrue(is_pdf("http://x/files/a.pdf", None))
        messages = build_messages("http://x/files/a.pdf", "image/png")
        self.assertEqual([part["type"] for part in messages[0]["content"]], ["text", "image_url"])

    def test_unreadable_pdf_yields_no_text(self) -> None:
        self.assertEqual(extract_pdf_text(b"this is not a pdf document"), "")

    def test_report_prompt_lists_patient_and_references(self) -> None:
        prompt = build_report_prompt(
            ECGAnalysis(heart_rate="72", rhythm="синусовый"),
            {"age": 35, "gender": "male", "complaints": ["Одышка"]},
            [{"name": "ЧСС", "value_min": 60, "value_max": 100, "unit": "уд/мин"}],
        )
        self.assertIn("Возраст: 35 лет", prompt)
        self.assertIn("Пол: мужской", prompt)
        self.assertIn("Жалобы: Одышка", prompt)
        self.assertIn("Факторы риска: нет", prompt)
        self.assertIn("ЧСС: 60–100 уд/мин", prompt)

    def test_fallback_text_constant(self) -> None:
        self.assertEqual(FALLBACK_REPORT_TEXT, "Не удалось сгенерировать отчёт")


class TestExtractCompletionText(unittest.TestCase):
    def test_string_and_part_content(self) -> None:
        self.assertEqual(extract_completion_text({"choices": [{"message": {"content": "abc"}}]}), "abc")
        parts = {"choices": [{"message": {"content": [{"type": "text", "text": "a"}, {"text": "b"}]}}]}
        self.assertEqual(extract_completion_text(parts), "ab")
        self.assertEqual(extract_completion_text({"unexpected": True}), "")


if __name__ == "__main__":
    unittest.main()
