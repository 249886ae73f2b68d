"""car.py

Carro simulado: cinemática simples (acelera, atrito, esterço), polígono de
colisão, sensor de raios e o cérebro (rede neural) que decide os controles.

O modo de controle é escolhido uma única vez na criação:

- `KEYS`: controles vêm de eventos externos (teclado);
- `DUMMY`: carro de tráfego, sempre acelerando, sem sensor nem cérebro;
- `AI`: controles sobrescritos a cada passo pelas saídas da rede.

Depois de bater (`damaged`), o carro congela posição, direção e fitness,
mas continua lendo o sensor e rodando a rede para visualização.
"""
from dataclasses import dataclass
from enum import Enum
import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from rodovia.geometry import Point, distance, polys_intersect, segment_polygon
from rodovia.network import NeuralNetwork, ShapeMismatch, feed_forward, from_levels
from rodovia.sensor import Sensor

log = logging.getLogger(__name__)


ACCELERATION = 0.9
FRICTION = 0.05
TURN_RATE = 0.03  # rad por passo
MAX_SPEED = 1.0

HIDDEN_NEURONS = 6
OUTPUT_NEURONS = 4  # forward, left, right, reverse


class ControlType(Enum):
	KEYS = "KEYS"
	DUMMY = "DUMMY"
	AI = "AI"


# nomes das setas do teclado -> atributo de Controls
_KEY_BINDINGS = {
	"up": "forward",
	"down": "reverse",
	"left": "left",
	"right": "right",
}


@dataclass
class Controls:
	forward: bool = False
	left: bool = False
	right: bool = False
	reverse: bool = False

	@staticmethod
	def for_type(control_type: ControlType) -> "Controls":
		controls = Controls()
		if control_type is ControlType.DUMMY:
			controls.forward = True
		return controls

	def set_key(self, key: str, pressed: bool) -> None:
		attr = _KEY_BINDINGS.get(key)
		if attr is not None:
			setattr(self, attr, bool(pressed))

	def apply_outputs(self, outputs: Sequence[float]) -> None:
		self.forward = outputs[0] == 1.0
		self.left = outputs[1] == 1.0
		self.right = outputs[2] == 1.0
		self.reverse = outputs[3] == 1.0


class Car:
	def __init__(self,
				 x: float,
				 y: float,
				 width: float,
				 height: float,
				 control_type: ControlType = ControlType.AI,
				 angle: float = 0.0,
				 max_speed: float = MAX_SPEED,
				 brain: Optional[NeuralNetwork] = None,
				 sensor: Optional[Sensor] = None,
				 rng: Optional[np.random.Generator] = None):
		if width <= 0 or height <= 0:
			raise ValueError(f"dimensões inválidas: {width}x{height}")
		self.x = float(x)
		self.y = float(y)
		self.width = float(width)
		self.height = float(height)
		self.angle = float(angle)
		self.speed = 0.0
		self.max_speed = float(max_speed)
		self.acceleration = ACCELERATION
		self.friction = FRICTION

		self.control_type = ControlType(control_type)
		self.controls = Controls.for_type(self.control_type)
		self.damaged = False
		self.fitness = 0.0

		self.sensor: Optional[Sensor] = None
		self.brain: Optional[NeuralNetwork] = None
		if self.control_type is not ControlType.DUMMY:
			self.sensor = sensor if sensor is not None else Sensor()
			if brain is not None:
				self._check_brain(brain)
				self.brain = brain
			else:
				self.brain = NeuralNetwork(self.brain_shape, rng)

		self.polygon: List[Point] = self.create_polygon()

	@property
	def use_brain(self) -> bool:
		return self.control_type is ControlType.AI

	@property
	def brain_shape(self) -> List[int]:
		return [self.sensor.ray_count, HIDDEN_NEURONS, OUTPUT_NEURONS]

	def _check_brain(self, brain: NeuralNetwork) -> None:
		if brain.shape != self.brain_shape:
			raise ShapeMismatch(f"cérebro com forma {brain.shape}, esperada {self.brain_shape}")

	def load_brain(self, levels) -> NeuralNetwork:
		"""Troca o cérebro pelo serializado em `levels`.

		Em caso de `ShapeMismatch` o cérebro atual permanece intacto e o erro
		é propagado para quem chamou.
		"""
		if self.sensor is None:
			raise ValueError("carros DUMMY não possuem cérebro")
		brain = from_levels(levels, expected_shape=self.brain_shape)
		self.brain = brain
		return brain

	def update(self, borders, obstacles: Sequence[Sequence[Point]]) -> None:
		"""Avança um passo da simulação.

		`borders` são as bordas da pista (segmentos) e `obstacles` os
		polígonos dos outros carros, lidos como um retrato do passo anterior.
		"""
		if not self.damaged:
			self._move()
			self.fitness += self.speed
			self.polygon = self.create_polygon()
			self.damaged = self._assess_damage(borders, obstacles)
			if self.damaged:
				log.debug("carro bateu em (%.1f, %.1f) com fitness %.2f", self.x, self.y, self.fitness)

		if self.sensor is not None and self.brain is not None:
			self.sensor.update(self.x, self.y, self.angle, borders, obstacles)
			outputs = feed_forward(self.sensor.features(), self.brain)
			if self.use_brain:
				self.controls.apply_outputs(outputs)

	def _assess_damage(self, borders, obstacles) -> bool:
		for border in borders:
			if polys_intersect(self.polygon, segment_polygon(border)):
				return True
		for poly in obstacles:
			if polys_intersect(self.polygon, poly):
				return True
		return False

	def create_polygon(self) -> List[Point]:
		"""Retângulo width x height girado por `angle` e centrado em (x, y)."""
		rad = distance(Point(0.0, 0.0), Point(self.width, self.height)) / 2.0
		alpha = math.atan2(self.width, self.height)
		corners = (
			self.angle - alpha,
			self.angle + alpha,
			math.pi + self.angle - alpha,
			math.pi + self.angle + alpha,
		)
		return [Point(self.x - math.sin(a) * rad, self.y - math.cos(a) * rad) for a in corners]

	def _move(self) -> None:
		if self.controls.forward:
			self.speed += self.acceleration
		if self.controls.reverse:
			self.speed -= self.acceleration

		if self.speed > self.max_speed:
			self.speed = self.max_speed
		if self.speed < -self.max_speed / 2.0:
			self.speed = -self.max_speed / 2.0

		# atrito nunca troca o sinal: abaixo dele a velocidade vai a zero
		if self.speed > 0:
			self.speed -= self.friction
		elif self.speed < 0:
			self.speed += self.friction
		if abs(self.speed) < self.friction:
			self.speed = 0.0

		if self.speed != 0:
			# em ré o esterço é invertido
			flip = 1 if self.speed > 0 else -1
			if self.controls.left:
				self.angle += TURN_RATE * flip
			if self.controls.right:
				self.angle -= TURN_RATE * flip

		self.x -= math.sin(self.angle) * self.speed
		self.y -= math.cos(self.angle) * self.speed
