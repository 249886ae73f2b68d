"""sensor.py

Sensor de distância do carro: um leque de raios centrado na direção do
veículo. Cada raio devolve a interseção mais próxima contra as bordas da
pista e as arestas dos polígonos dos outros carros.
"""
import math
from typing import List, Optional, Sequence, Tuple

from rodovia.geometry import Point, Segment, get_intersection, lerp


RAY_COUNT = 5
RAY_LENGTH = 150.0
RAY_SPREAD = math.pi / 2.0

Ray = Tuple[Point, Point]
Reading = Optional[Point]


def _border_points(border) -> Tuple[Point, Point]:
	if isinstance(border, Segment):
		return border.p1, border.p2
	return border[0], border[1]


class Sensor:
	def __init__(self,
				 ray_count: int = RAY_COUNT,
				 ray_length: float = RAY_LENGTH,
				 ray_spread: float = RAY_SPREAD):
		if int(ray_count) < 1:
			raise ValueError(f"ray_count deve ser >= 1, recebido {ray_count}")
		self.ray_count = int(ray_count)
		self.ray_length = float(ray_length)
		self.ray_spread = float(ray_spread)

		self.rays: List[Ray] = []
		self.readings: List[Reading] = []

	def update(self, x: float, y: float, angle: float, borders, obstacles) -> List[Reading]:
		"""Recalcula raios e leituras para a pose (x, y, angle)."""
		self.cast_rays(x, y, angle)
		self.readings = [self.get_reading(ray, borders, obstacles) for ray in self.rays]
		return self.readings

	def cast_rays(self, x: float, y: float, angle: float) -> List[Ray]:
		rays = []
		start = Point(x, y)
		for i in range(self.ray_count):
			# com um único raio, ele aponta exatamente para a frente
			t = 0.5 if self.ray_count == 1 else i / (self.ray_count - 1)
			ray_angle = lerp(self.ray_spread / 2.0, -self.ray_spread / 2.0, t) + angle
			end = Point(x - math.sin(ray_angle) * self.ray_length,
						y - math.cos(ray_angle) * self.ray_length)
			rays.append((start, end))
		self.rays = rays
		return rays

	def get_reading(self, ray: Ray, borders, obstacles: Sequence[Sequence[Point]]) -> Reading:
		"""Toque mais próximo (menor `offset`) do raio, ou `None`."""
		touches = []
		for border in borders:
			b1, b2 = _border_points(border)
			touch = get_intersection(ray[0], ray[1], b1, b2)
			if touch is not None:
				touches.append(touch)

		for poly in obstacles:
			for j in range(len(poly)):
				touch = get_intersection(ray[0], ray[1], poly[j], poly[(j + 1) % len(poly)])
				if touch is not None:
					touches.append(touch)

		if not touches:
			return None
		return min(touches, key=lambda p: p.offset)

	def features(self) -> List[float]:
		"""Leituras normalizadas: 0 = nada ao alcance, 1 = encostado."""
		return [0.0 if r is None else 1.0 - r.offset for r in self.readings]
