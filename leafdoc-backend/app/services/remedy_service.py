# app/services/remedy_service.py
import json
import logging
from concurrent.futures import ThreadPoolExecutor

from app.core.errors import RemedyDetailError

logger = logging.getLogger(__name__)

SIMPLE_FALLBACK = "No summary found. Click 'View Treatment Plan' for details."

THREE_PART_FALLBACKS = {
    "chemical": "No specific chemical treatment found. Consult a local agro-store.",
    "organic": "No specific organic treatment found. Practices like using neem oil are often recommended.",
    "prevention": "General preventative measures include ensuring good air circulation.",
}

DETAIL_MODES = ("three_part", "structured")


def display_name(disease_name: str) -> str:
    """Tomato_Early_blight -> Tomato Early blight"""
    return str(disease_name).replace("_", " ").strip()


def _three_part_prompts(name: str) -> dict:
    return {
        "chemical": f"Provide a detailed chemical treatment plan for {name}.",
        "organic": f"Provide a detailed organic or biological control plan for {name}.",
        "prevention": f"Provide a detailed list of preventative measures to avoid {name} in the future.",
    }


def _structured_prompt(name: str) -> str:
    return (
        f"Give a treatment plan for the plant disease: {name}. "
        "Respond with a JSON object with exactly these keys: "
        '"medicineName" (string), "howToUse" (string), '
        '"steps" (array of 3 to 4 short strings).'
    )


def _parse_plan(text: str) -> dict:
    plan = json.loads(text)
    if not isinstance(plan, dict):
        raise ValueError("plan is not an object")

    medicine = plan.get("medicineName")
    how_to_use = plan.get("howToUse")
    steps = plan.get("steps")
    if not isinstance(medicine, str) or not isinstance(how_to_use, str):
        raise ValueError("medicineName/howToUse must be strings")
    if not isinstance(steps, list) or not all(isinstance(s, str) for s in steps):
        raise ValueError("steps must be a list of strings")

    return {"medicineName": medicine, "howToUse": how_to_use, "steps": steps}


class RemedyResolver:
    """
    Remedy text for a diagnosed disease.

    simple_remedy() always returns a string.
    detailed_remedy() returns the shape picked by `detail_mode`:
      three_part -> {chemical, organic, prevention}, never fails
      structured -> {medicineName, howToUse, steps}, RemedyDetailError on bad output
    """

    def __init__(self, text_client, detail_mode: str = "three_part"):
        if detail_mode not in DETAIL_MODES:
            raise ValueError(f"unknown remedy detail mode: {detail_mode!r}")
        self.text_client = text_client
        self.detail_mode = detail_mode

    def simple_remedy(self, disease_name: str) -> str:
        prompt = (
            "Provide a very brief, one-sentence remedy suggestion for the plant disease: "
            f"{display_name(disease_name)}."
        )
        result = self.text_client.generate(prompt)
        return result or SIMPLE_FALLBACK

    def detailed_remedy(self, disease_name: str) -> dict:
        if self.detail_mode == "structured":
            return self._structured_plan(disease_name)
        return self._three_part_plan(disease_name)

    def _three_part_plan(self, disease_name: str) -> dict:
        prompts = _three_part_prompts(display_name(disease_name))

        # all three in flight at once; each field degrades on its own
        with ThreadPoolExecutor(max_workers=len(prompts)) as pool:
            futures = {key: pool.submit(self.text_client.generate, prompt) for key, prompt in prompts.items()}
            plan = {}
            for key, future in futures.items():
                try:
                    text = future.result()
                except Exception:
                    logger.exception("Remedy %s request failed", key)
                    text = None
                plan[key] = text or THREE_PART_FALLBACKS[key]
        return plan

    def _structured_plan(self, disease_name: str) -> dict:
        text = self.text_client.generate(_structured_prompt(display_name(disease_name)), structured=True)
        if text is None:
            raise RemedyDetailError()
        try:
            return _parse_plan(text)
        except ValueError as e:
            logger.error("Unusable treatment plan for %s: %s", disease_name, e)
            raise RemedyDetailError() from e
