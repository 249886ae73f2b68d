"""simulation.py

Passo da população: avança todos os carros um tick e escolhe o "melhor"
(maior fitness). Também monta uma geração nova de carros a partir de um
cérebro salvo, mantendo uma cópia intacta e mutando as demais.
"""
import logging
import math
from typing import List, Optional, Sequence

import numpy as np
from numpy.random import default_rng

from rodovia.car import HIDDEN_NEURONS, OUTPUT_NEURONS, Car, ControlType
from rodovia.geometry import Point, angle
from rodovia.network import from_levels, mutate
from rodovia.sensor import RAY_COUNT

log = logging.getLogger(__name__)


MUTATION_AMOUNT = 0.1
CAR_WIDTH = 30.0
CAR_HEIGHT = 50.0


def start_angle(direction: Point) -> float:
	"""Direção inicial do carro a partir do vetor de uma marcação de largada.

	O vetor da marcação aponta para trás do carro: com o ângulo devolvido o
	carro anda no sentido de `-direction`.
	"""
	return -angle(direction) + math.pi / 2.0


def generate_cars(count: int,
				  x: float,
				  y: float,
				  heading: float = 0.0,
				  brain_levels=None,
				  mutation_amount: float = MUTATION_AMOUNT,
				  rng: Optional[np.random.Generator] = None,
				  width: float = CAR_WIDTH,
				  height: float = CAR_HEIGHT,
				  max_speed: Optional[float] = None) -> List[Car]:
	"""Cria `count` carros AI no mesmo ponto de largada.

	Com `brain_levels` (cérebro serializado), o primeiro carro recebe o
	cérebro exatamente como salvo e os demais recebem cópias mutadas por
	`mutation_amount`. Um cérebro de forma incompatível levanta
	`ShapeMismatch` antes de qualquer carro ser criado.
	"""
	if rng is None:
		rng = default_rng()
	kwargs = {} if max_speed is None else {"max_speed": max_speed}

	best = None
	if brain_levels is not None:
		best = from_levels(brain_levels, expected_shape=[RAY_COUNT, HIDDEN_NEURONS, OUTPUT_NEURONS])

	cars = []
	for i in range(int(count)):
		brain = None
		if best is not None:
			brain = best if i == 0 else mutate(best.copy(), mutation_amount, rng)
		cars.append(Car(x, y, width, height, ControlType.AI, angle=heading, brain=brain, rng=rng, **kwargs))
	if best is not None:
		log.info("geração criada com %d carros a partir do cérebro salvo", len(cars))
	return cars


class Simulation:
	def __init__(self, borders: Sequence, cars: Sequence[Car], traffic: Optional[Sequence[Car]] = None):
		self.borders = list(borders)
		self.cars = list(cars)
		self.traffic = list(traffic) if traffic is not None else []
		self.best_car: Optional[Car] = self.cars[0] if self.cars else None
		self.tick = 0

	def step(self) -> Optional[Car]:
		"""Avança um tick e devolve o melhor carro.

		Os polígonos do tráfego são copiados antes de qualquer atualização,
		então todos os carros colidem contra o estado do fim do tick anterior,
		independente da ordem da lista.
		"""
		traffic_polygons = [list(t.polygon) for t in self.traffic]

		for t in self.traffic:
			t.update(self.borders, [])
		for car in self.cars:
			was_damaged = car.damaged
			car.update(self.borders, traffic_polygons)
			if car.damaged and not was_damaged:
				log.debug("tick %d: carro danificado, fitness %.2f", self.tick, car.fitness)

		self.best_car = self.select_best()
		self.tick += 1
		return self.best_car

	def run(self, ticks: int, on_tick=None) -> Optional[Car]:
		for _ in range(int(ticks)):
			self.step()
			if on_tick is not None:
				on_tick(self)
		return self.best_car

	def select_best(self) -> Optional[Car]:
		# em empate vence o primeiro da lista
		best = None
		for car in self.cars:
			if best is None or car.fitness > best.fitness:
				best = car
		return best

	def alive_count(self) -> int:
		return sum(1 for car in self.cars if not car.damaged)
