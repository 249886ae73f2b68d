"""network.py

Rede neural feed-forward mínima usada como "cérebro" dos carros.

Cada `Level` liga `n` entradas a `m` saídas com pesos `(n, m)` e um vetor
de `m` limiares (biases). A ativação é um degrau: a saída vale 1.0 quando a
soma ponderada das entradas ultrapassa o limiar e 0.0 caso contrário.

Não há treino por gradiente: a rede evolui apenas por `mutate`, que puxa
cada parâmetro em direção a um valor aleatório novo. O gerador aleatório
(`numpy.random.Generator`) é sempre injetável para permitir testes
reprodutíveis.

A serialização segue o formato usado para guardar o "melhor cérebro": uma
lista de níveis `{inputs, outputs, weights, biases}` só com listas numéricas.
"""
from typing import Dict, List, Optional, Sequence

import numpy as np
from numpy.random import default_rng


class NetworkError(ValueError):
	"""Erro base para redes inválidas."""


class ShapeMismatch(NetworkError):
	"""A forma de uma rede não corresponde à esperada."""


def _lerp(a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
	return a * (1.0 - t) + b * t


class Level:
	def __init__(self,
				 input_count: int,
				 output_count: int,
				 rng: Optional[np.random.Generator] = None,
				 weights: Optional[np.ndarray] = None,
				 biases: Optional[np.ndarray] = None):
		self.inputs = np.zeros(int(input_count), dtype=float)
		self.outputs = np.zeros(int(output_count), dtype=float)
		if weights is not None and biases is not None:
			self.weights = weights
			self.biases = biases
			return
		if rng is None:
			rng = default_rng()
		self.weights = rng.uniform(-1.0, 1.0, size=(int(input_count), int(output_count)))
		self.biases = rng.uniform(-1.0, 1.0, size=int(output_count))

	@property
	def input_count(self) -> int:
		return int(self.weights.shape[0])

	@property
	def output_count(self) -> int:
		return int(self.weights.shape[1])

	def feed_forward(self, inputs: np.ndarray) -> np.ndarray:
		sums = inputs.dot(self.weights)
		outputs = np.where(sums > self.biases, 1.0, 0.0)
		# arrays novos: quem guardou uma referência antiga continua vendo o
		# estado completo do passo anterior
		self.inputs = inputs.copy()
		self.outputs = outputs
		return outputs

	def to_dict(self) -> Dict[str, list]:
		return {
			"inputs": self.inputs.tolist(),
			"outputs": self.outputs.tolist(),
			"weights": self.weights.tolist(),
			"biases": self.biases.tolist(),
		}

	@staticmethod
	def from_dict(data: dict) -> "Level":
		try:
			weights = np.array(data["weights"], dtype=float)
			biases = np.array(data["biases"], dtype=float)
			inputs = np.array(data["inputs"], dtype=float)
			outputs = np.array(data["outputs"], dtype=float)
		except (KeyError, TypeError, ValueError) as exc:
			raise ShapeMismatch(f"nível malformado: {exc}") from exc

		if weights.ndim != 2 or biases.ndim != 1 or inputs.ndim != 1 or outputs.ndim != 1:
			raise ShapeMismatch("nível malformado: dimensões inesperadas")
		n, m = weights.shape
		if inputs.size != n or outputs.size != m or biases.size != m:
			raise ShapeMismatch(
				f"nível inconsistente: weights {weights.shape}, biases {biases.size}, "
				f"inputs {inputs.size}, outputs {outputs.size}")

		level = Level(n, m, weights=weights, biases=biases)
		level.inputs = inputs
		level.outputs = outputs
		return level


class NeuralNetwork:
	def __init__(self,
				 neuron_counts: Sequence[int],
				 rng: Optional[np.random.Generator] = None,
				 levels: Optional[List[Level]] = None):
		if len(neuron_counts) < 2:
			raise NetworkError("a rede precisa de pelo menos uma camada de entrada e uma de saída")
		counts = [int(c) for c in neuron_counts]
		if levels is not None:
			# níveis prontos precisam encadear exatamente na forma pedida
			got = [(level.input_count, level.output_count) for level in levels]
			if got != list(zip(counts, counts[1:])):
				raise ShapeMismatch(f"níveis {got} não encadeiam na forma {counts}")
			self.levels: List[Level] = list(levels)
			return
		if rng is None:
			rng = default_rng()
		self.levels = [Level(counts[i], counts[i + 1], rng) for i in range(len(counts) - 1)]

	@staticmethod
	def from_level_list(levels: Sequence[Level]) -> "NeuralNetwork":
		if len(levels) == 0:
			raise ShapeMismatch("a rede precisa de pelo menos um nível")
		shape = [levels[0].input_count] + [level.output_count for level in levels]
		return NeuralNetwork(shape, levels=list(levels))

	@property
	def shape(self) -> List[int]:
		return [self.levels[0].input_count] + [level.output_count for level in self.levels]

	def copy(self) -> "NeuralNetwork":
		return from_levels(to_levels(self))


def feed_forward(given_inputs, network: NeuralNetwork) -> List[float]:
	"""Propaga `given_inputs` por todos os níveis e devolve a última saída."""
	outputs = np.asarray(given_inputs, dtype=float)
	if outputs.shape != (network.levels[0].input_count,):
		raise ShapeMismatch(
			f"esperadas {network.levels[0].input_count} entradas, recebidas {outputs.size}")
	for level in network.levels:
		outputs = level.feed_forward(outputs)
	return outputs.tolist()


def mutate(network: NeuralNetwork, amount: float = 1.0, rng: Optional[np.random.Generator] = None) -> NeuralNetwork:
	"""Aproxima cada bias e peso de um valor uniforme em [-1, 1].

	`amount=0` não altera nada; `amount=1` substitui todos os parâmetros
	pelos valores sorteados. A forma da rede nunca muda. Por nível, os biases
	são sorteados antes dos pesos.
	"""
	if not 0.0 <= amount <= 1.0:
		raise ValueError(f"amount deve estar em [0, 1], recebido {amount}")
	if rng is None:
		rng = default_rng()
	for level in network.levels:
		level.biases = _lerp(level.biases, rng.uniform(-1.0, 1.0, size=level.biases.shape), amount)
		level.weights = _lerp(level.weights, rng.uniform(-1.0, 1.0, size=level.weights.shape), amount)
	return network


def to_levels(network: NeuralNetwork) -> List[Dict[str, list]]:
	return [level.to_dict() for level in network.levels]


def from_levels(data, expected_shape: Optional[Sequence[int]] = None) -> NeuralNetwork:
	"""Reconstrói uma rede a partir da lista de níveis serializada.

	Levanta `ShapeMismatch` se os níveis não encadeiam (saídas do nível i
	diferentes das entradas do nível i+1) ou se a forma final difere de
	`expected_shape`. Nada é aplicado parcialmente.
	"""
	if not isinstance(data, (list, tuple)) or len(data) == 0:
		raise ShapeMismatch("a rede serializada deve ser uma lista não vazia de níveis")
	network = NeuralNetwork.from_level_list([Level.from_dict(d) for d in data])
	if expected_shape is not None and network.shape != list(expected_shape):
		raise ShapeMismatch(f"forma {network.shape} difere da esperada {list(expected_shape)}")
	return network
