from models.inference_results import TokenUsage


class CostGenerator:
	"""Price the token usage of an analysis or practice-question call.

	Rates are USD per 1,000 tokens. Dated snapshots such as
	`gpt-4.1-mini-2025-04-14` are priced as their base model. A model with no
	known rate is reported with zero cost and `priced` set to False rather
	than failing the request that produced the usage.
	"""

	DEFAULT_RATES = {
		"gpt-4.1-mini": (0.0004, 0.0016),
		"gpt-4.1": (0.002, 0.008),
		"gpt-4o-mini": (0.00015, 0.0006),
	}

	def __init__(self, rates: dict | None = None):
		"""
		Args:
			rates: Optional mapping of model -> (input_per_1k, output_per_1k).
		"""
		self.rates = dict(rates or self.DEFAULT_RATES)

	def rates_for(self, model: str) -> tuple[float, float] | None:
		"""Return `(input_per_1k, output_per_1k)` for a model or one of its snapshots."""
		name = model.lower()
		if name in self.rates:
			return self.rates[name]
		# longest prefix wins so gpt-4.1-mini-* is not priced as gpt-4.1
		for base in sorted(self.rates, key=len, reverse=True):
			if name.startswith(base + "-"):
				return self.rates[base]
		return None

	def estimate(self, input_tokens: int, output_tokens: int, model: str) -> dict:
		"""Return the cost breakdown of one call.

		Raises:
			ValueError: If a token count is negative.
		"""
		if input_tokens < 0 or output_tokens < 0:
			raise ValueError("Token counts must be non-negative integers.")

		rates = self.rates_for(model)
		input_rate, output_rate = rates or (0.0, 0.0)
		input_cost = input_tokens / 1000.0 * input_rate
		output_cost = output_tokens / 1000.0 * output_rate
		return {
			"model": model,
			"priced": rates is not None,
			"inputTokens": int(input_tokens),
			"outputTokens": int(output_tokens),
			"inputCost": round(input_cost, 8),
			"outputCost": round(output_cost, 8),
			"totalCost": round(input_cost + output_cost, 8),
		}

	def estimate_usage(self, usage: TokenUsage | None, model: str) -> dict:
		"""Price a TokenUsage; missing counts are treated as zero."""
		if usage is None:
			return self.estimate(0, 0, model)
		return self.estimate(int(usage.input_tokens or 0), int(usage.output_tokens or 0), model)
